#!/usr/bin/env python3

from setuptools import setup

version = '0.1.0'
author = 'Azaria Zornberg'
email = 'a.zornberg96@gmail.com'
license_str = 'MIT License'
url = 'https://github.com/zorn96/ms_ad_realm/'
description = 'Python library for authenticating users against Microsoft Active Directory'
package_name = 'ms_ad_realm'
package_folder = '.'

long_description = open('README.md', encoding='utf-8').read()
packages = ['ms_ad_realm',
            'ms_ad_realm.core',
            'ms_ad_realm.environment',
            'ms_ad_realm.environment.discovery',
            'ms_ad_realm.environment.ldap',
            ]


setup_kwargs = {
    'packages': packages,
    'package_dir': {'': package_folder},
}

requirements = ['dnspython>=2.1.0',
                'ldap3>=2.8.0',
                ]

test_requirements = ['hypothesis>=6.0.0',
                     'pytest>=7.0.0',
                     'pytest-asyncio>=0.21.0',
                     ]

setup(name=package_name,
      version=version,
      install_requires=requirements,
      extras_require={'test': test_requirements},
      license=license_str,
      author=author,
      author_email=email,
      description=description,
      long_description=long_description,
      long_description_content_type='text/markdown',
      keywords='python3 ldap microsoft windows active-directory authentication realm ad',
      python_requires=">=3.7",
      url=url,
      classifiers=['Development Status :: 3 - Alpha',
                   'Intended Audience :: Developers',
                   'Intended Audience :: System Administrators',
                   'License :: OSI Approved :: MIT License',
                   'Operating System :: OS Independent',
                   'Programming Language :: Python',
                   'Programming Language :: Python :: 3',
                   'Topic :: Security',
                   'Topic :: Software Development :: Libraries :: Python Modules',
                   'Topic :: System :: Systems Administration :: Authentication/Directory :: LDAP'],
      **setup_kwargs
      )
