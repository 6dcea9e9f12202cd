from .fake_site import FakeFetcher, FakeSite, fake_workspace
from .util import TickCounter

__all__ = [
    "FakeFetcher",
    "FakeSite",
    "TickCounter",
    "fake_workspace",
]
