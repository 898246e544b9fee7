from setuptools import setup

version = '0.1'

with open("README.md", "r", encoding="utf-8") as f:
    long_descr = f.read()

setup(
    name='pyvsx',
    packages=['pyvsx'],
    version=version,
    license='Apache 2.0',
    description='Control Pioneer VSX audio/video receivers',
    long_description=long_descr,
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    keywords=['Pioneer', 'VSX', 'AV Receiver', 'telnet'],
    install_requires=[
        "aiohttp>=3.8.3,<3.14",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "aioresponses>=0.7.4",
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: Home Automation',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python :: 3.10'
    ],
)
