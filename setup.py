from setuptools import setup, find_packages

setup(
    install_requires=[
        'cryptography >= 3.0',
        'google-api-core >= 2.0.0',
        'google-auth >= 1.32.1',
        'google-cloud-bigquery >= 3.21.0',
        'pytz >= 2019.1',
        'requests >= 2.18.0',
    ],
    extras_require={
        'test': [
            'pytest >= 7.0',
            'pytest-mock >= 3.6',
        ],
    },
    name='bigquery-connector',
    packages=find_packages(exclude=['tests']),
    version='0.1.0',
)
