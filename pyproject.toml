[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rancherprov"
version = "0.1.0"
description = "Provisioning helpers for Rancher-managed clusters: K3k virtual clusters, Cluster API machines, node pool scaling and supported Kubernetes versions."
requires-python = ">=3.10"
dependencies = []
keywords = ["rancher", "kubernetes", "provisioning", "k3k", "rke2", "k3s", "cluster-api"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rancherprov"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
