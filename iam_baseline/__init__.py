import os

__version__ = '1.0.0'


def load_yaml(specfile: str):
    import yaml

    with open(specfile, encoding="utf8") as fp:
        return yaml.safe_load(fp.read())


def package_path(*paths) -> str:
    return os.path.join(os.path.dirname(__file__), *paths)
