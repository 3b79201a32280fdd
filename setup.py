"""
Setup script for ScreenMemory.

Usage:
    pip install -e .[test]
    python setup.py py2app      # macOS app bundle

The resulting app will be in dist/ScreenMemory.app
"""
import sys
from setuptools import setup, find_packages

APP = ['screenmemory/__main__.py']
OPTIONS = {
    'argv_emulation': False,
    'iconfile': None,
    'plist': {
        'CFBundleName': 'ScreenMemory',
        'CFBundleDisplayName': 'ScreenMemory',
        'CFBundleIdentifier': 'com.screenmemory.cli',
        'CFBundleVersion': '1.0.0',
        'CFBundleShortVersionString': '1.0.0',
        'NSHighResolutionCapable': True,
        'LSUIElement': True,
    },
    'packages': ['screenmemory', 'mss', 'pytesseract', 'PIL'],
    'excludes': [
        'matplotlib',
        'tkinter',
        'PyQt5',
        'PySide2',
    ],
}

extra = {}
if 'py2app' in sys.argv:
    extra = dict(
        app=APP,
        options={'py2app': OPTIONS},
        setup_requires=['py2app'],
    )

setup(
    name='screenmemory',
    version='1.0.0',
    description='Searchable screenshot history with OCR',
    packages=find_packages(include=['screenmemory', 'screenmemory.*']),
    python_requires='>=3.10',
    install_requires=[
        'mss',
        'pytesseract',
        'Pillow',
        'pyobjc-framework-Cocoa; sys_platform == "darwin"',
        'pyobjc-framework-Quartz; sys_platform == "darwin"',
    ],
    extras_require={
        'test': ['pytest', 'pytest-asyncio'],
    },
    entry_points={
        'console_scripts': [
            'screenmemory = screenmemory.cli:main',
        ],
    },
    **extra,
)
