from setuptools import find_packages, setup

setup(
    name='digidec',
    packages=find_packages(exclude=['*.test']),
    install_requires=[
        'numpy',
        'scipy>=1.12',
        'numpy-indexed',
        'pycosat',
        'cached-property',
    ],
    extras_require={
        'test': ['pytest'],
    },
    license='LGPL',
    platforms='any',
    zip_safe=False,
)
