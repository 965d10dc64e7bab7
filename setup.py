from setuptools import setup, find_packages

setup(
    name='memento-exchange',
    version='0.1.0',
    packages=find_packages(include=['memento', 'memento.*'], exclude=['*.tests']),
    install_requires=[
        'mpmath',
        'numpy',
        'typing_extensions',
        'python-dotenv',
        'supabase>=2.3',
    ],
    extras_require={
        'scripts': ['matplotlib', 'pandas'],
        'test': ['pytest', 'matplotlib', 'pandas'],
    },
    description='Constant-product AMM with golden-ratio order seeding and a Rock-Paper-Scissors / Tic-Tac-Toe betting game room over Supabase.',
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.11',
)
