from setuptools import setup


setup(
    name="wo-viewer",
    version="0.3.0",
    description="Normalize, filter and count maintenance work-order exports from CSV and Excel files",
    packages=["wo_viewer"],
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "all": ["xlrd"],
    },
    entry_points={
        "console_scripts": [
            "wo-viewer=wo_viewer.cli:main",
        ]
    },
)
