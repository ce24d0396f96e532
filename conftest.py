# conftest.py
import matplotlib


def pytest_configure():
    # headless backend for every plotting test
    matplotlib.use("Agg", force=True)
