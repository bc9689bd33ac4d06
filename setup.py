from setuptools import setup, find_packages

setup(
    name='deferc',
    version='0.1.0',
    py_modules=['deferc', 'compiler'],
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=[
        'lark>=1.1.6',
        'pydantic>=2.0',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'deferc = deferc:main',
        ],
    },
)
