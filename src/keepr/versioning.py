from importlib.metadata import version, PackageNotFoundError


def get_version() -> str:
    try:
        return version("keepr")
    except PackageNotFoundError:
        return "0.0.0"
