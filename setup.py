from setuptools import setup, find_packages

setup(
    name="bengali-epaper",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"epaper": ["templates/*.html"]},
    include_package_data=True,
    install_requires=[
        "requests",
        "reportlab",
        "jinja2",
        "pyyaml",
        "rich",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "epaper=epaper:main",
        ],
    },
    python_requires=">=3.8",
    author="Bengali News Time Team",
    description="Template-driven e-paper generator for a Bengali news platform, rendering newspaper-style PDF editions from a Supabase content store",
    keywords="epaper, newspaper, pdf, bengali, layout",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
