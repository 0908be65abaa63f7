from setuptools import setup, find_packages

setup(
    name='filter-rwfrom',
    version='0.1.0',
    description='Rewrite the From: header of messages in transit based on envelope addresses',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    python_requires='>=3.9',
    install_requires=[
        'pyyaml',
        'python-dotenv',
        'click',
    ],
    extras_require={
        'dev': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'filter-rwfrom=filter_rwfrom.cli:main',
        ],
    },
)
