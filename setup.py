from setuptools import setup, find_packages

setup(
    name="hy2link",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "aiohttp>=3.9.1",
        "python-dotenv>=1.0.0",
        "tqdm>=4.66.1",
        "rich>=13.7.0",
        "qrcode>=8.0",
    ],
    extras_require={
        "test": ["pytest>=7.4"],
    },
    entry_points={
        'console_scripts': [
            'hy2link=hy2link.cli:main',
        ],
    },
    author="Marczo",
    description="Hysteria2 share link parser, encoder and client config renderer.",
    python_requires='>=3.8',
)
