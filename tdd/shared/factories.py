"""
Factories for manifest test data.

These build domain objects directly; nothing touches disk.
"""
import factory
from faker import Faker

from wmgr.models import Group, Manifest, ManifestRepo

fake = Faker()


class ManifestRepoFactory(factory.Factory):
    """Factory for creating ManifestRepo instances."""

    class Meta:
        model = ManifestRepo

    dest = factory.Sequence(lambda n: f"repo{n}")
    url = factory.LazyAttribute(lambda o: f"https://github.com/{fake.slug()}/{o.dest}.git")
    branch = None

    class Params:
        """Parameters for common repository shapes."""

        on_develop = factory.Trait(branch="develop")
        pinned = factory.Trait(sha1="0123456789abcdef0123456789abcdef01234567")


class ManifestFactory(factory.Factory):
    """Factory for creating Manifest instances with three repositories."""

    class Meta:
        model = Manifest

    repos = factory.LazyFunction(lambda: [ManifestRepoFactory() for _ in range(3)])
    groups = factory.LazyFunction(dict)
    default_branch = "main"


def group(*dests: str, description=None) -> Group:
    return Group(repos=list(dests), description=description)
