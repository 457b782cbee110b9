import os

import setuptools

# Make sure that README.md decodes in environments that use the C locale
# (which implies ASCII), by explicitly giving the encoding.
with open(os.path.join(os.path.dirname(__file__), "README.md"), encoding="utf-8") as f:
    long_description = f.read()


setuptools.setup(
    name="textform",
    # MAJOR.MINOR.PATCH, per http://semver.org
    version="0.1.0",
    description="Keyboard-driven text input forms for character-cell terminals",
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords="terminal, forms, text input, tui",
    license="ISC",
    py_modules=(
        "rawterm",
        "textform",
        "formpoll",
        "formdemo",
    ),
    entry_points={
        "console_scripts": ("formdemo = formdemo:_main",)
    },
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.7",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Environment :: Console",
        "Topic :: Terminals",
        "Topic :: Software Development :: User Interfaces",
        "License :: OSI Approved :: ISC License (ISCL)",
        "Operating System :: POSIX",
        "Operating System :: Microsoft :: Windows",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: Implementation :: CPython",
        "Programming Language :: Python :: Implementation :: PyPy",
    ],
)
