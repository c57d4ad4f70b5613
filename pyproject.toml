[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "petersearch"
version = "0.1.0"
description = "Full-text indexing of crawled HTML pages: tokenising, on-disk inverted index building and TF-IDF/BM25 scoring"
requires-python = ">=3.10"
dependencies = []
keywords = ["search", "inverted-index", "bm25", "tf-idf", "information-retrieval", "stemming"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
    "Topic :: Text Processing :: Indexing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["petersearch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
