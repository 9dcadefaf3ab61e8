from setuptools import setup, find_packages

setup(
    name="source-sync",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "requests",
        "pyyaml",
        "textual",
        # Component sources (JSX / TSX)
        "tree-sitter>=0.22",
        "tree-sitter-javascript",
        "tree-sitter-typescript",
        "watchdog>=3.0",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "source-sync=source_sync.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Maps live-preview selections to source spans and edits them structurally.",
)
