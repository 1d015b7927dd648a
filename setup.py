from setuptools import setup

__version__ = "0.1.0"


def get_long_desc():
    return open('README.rst', 'r').read()


def get_requirements():
    lines = open('requirements.txt', 'r').readlines()
    reqs = [line.strip() for line in lines if line.strip()]
    return reqs


setup(
    name="kubeapi",
    version=__version__,
    packages=["kubeapi"],
    package_data={"kubeapi": ["resources/*.json"]},
    description="kubeapi turns a Kubernetes cluster's OpenAPI document into a registry "
                "of callable actions, and extends it at runtime with custom resources",
    long_description=get_long_desc(),
    long_description_content_type="text/x-rst",
    keywords=["Kubernetes", "OpenAPI", "swagger", "client", "CRD",
              "custom resources", "API"],
    install_requires=get_requirements(),
    extras_require={"test": ["pytest"]},
    python_requires=">=3.9",
    classifiers=["Development Status :: 4 - Beta",
                 "Intended Audience :: Developers",
                 "Intended Audience :: Information Technology",
                 "License :: OSI Approved :: MIT License",
                 "Operating System :: OS Independent",
                 "Programming Language :: Python :: 3 :: Only",
                 "Programming Language :: Python :: 3.9",
                 "Programming Language :: Python :: 3.10",
                 "Programming Language :: Python :: 3.11",
                 "Programming Language :: Python :: 3.12",
                 "Topic :: Software Development",
                 "Topic :: Software Development :: Libraries",
                 "Topic :: Software Development :: Libraries :: Python Modules",
                 "Topic :: System :: Systems Administration",
                 "Topic :: Utilities",
                 "Typing :: Typed"],
    license="MIT"
)
