"""Container image references.

An `ImageReference` is the registry / repository / tag triple a fixture is
started from. The fixture pins one reference and refuses any other image
unless that image explicitly declares itself a compatible substitute for
the pinned one (for example a mirror of the same build in a private
registry).

```python
from influxdb_fixture.image import ImageReference

pinned = ImageReference.parse("quay.io/influxdb/influxdb:v2.0.2")
mirror = ImageReference.parse("registry.local/influxdb:2.0.2").as_compatible_substitute_for(pinned)

mirror.assert_compatible_with(pinned)  # ok
ImageReference.parse("quay.io/influxdb/influxdb:v2.7.1").assert_compatible_with(pinned)  # raises
```
"""

from __future__ import annotations

import attrs

from .exceptions import ImageIncompatibilityError

DEFAULT_REGISTRY = "docker.io"
DEFAULT_TAG = "latest"


def _looks_like_registry(component: str) -> bool:
    # Same heuristic as the Docker CLI
    return "." in component or ":" in component or component == "localhost"


@attrs.define(frozen=True, slots=True)
class ImageReference:
    """Registry / repository / tag triple identifying a container image.

    Attributes:
        repository: Repository path, e.g. ``influxdb/influxdb``.
        tag: Image tag. Default: ``latest``.
        registry: Registry host, or None for Docker Hub.
        compatible_substitute_for: Image this one declares itself a
            drop-in replacement for.
    """

    repository: str = attrs.field(validator=attrs.validators.min_len(1))
    tag: str = attrs.field(default=DEFAULT_TAG, validator=attrs.validators.min_len(1))
    registry: str | None = None
    compatible_substitute_for: ImageReference | None = attrs.field(default=None, eq=False)

    @classmethod
    def parse(cls, name: str) -> ImageReference:
        """Parse an image name such as ``quay.io/influxdb/influxdb:v2.0.2``.

        Args:
            name: Image name in Docker CLI notation.

        Returns:
            Parsed reference.

        Raises:
            ValueError: If the name is empty or has an empty tag.
        """
        name = name.strip()
        if not name:
            raise ValueError("Image name must not be empty")

        registry: str | None = None
        remainder = name
        first, sep, rest = name.partition("/")
        if sep and _looks_like_registry(first):
            registry, remainder = first, rest

        repository, tag = remainder, DEFAULT_TAG
        slash = remainder.rfind("/")
        colon = remainder.rfind(":")
        if colon > slash:
            repository, tag = remainder[:colon], remainder[colon + 1 :]
            if not tag:
                raise ValueError(f"Image name has an empty tag: {name!r}")

        return cls(repository=repository, tag=tag, registry=registry)

    @property
    def canonical_registry(self) -> str:
        return self.registry or DEFAULT_REGISTRY

    @property
    def unversioned(self) -> str:
        """Image name without the tag."""
        if self.registry:
            return f"{self.registry}/{self.repository}"
        return self.repository

    def __str__(self) -> str:
        return f"{self.unversioned}:{self.tag}"

    def as_compatible_substitute_for(self, other: ImageReference) -> ImageReference:
        """Return a copy of this reference declared as a substitute for ``other``."""
        return attrs.evolve(self, compatible_substitute_for=other)

    def same_image(self, other: ImageReference) -> bool:
        return (
            self.canonical_registry == other.canonical_registry
            and self.repository == other.repository
            and self.tag == other.tag
        )

    def is_compatible_with(self, other: ImageReference) -> bool:
        """Check whether this image may be used where ``other`` is expected.

        An image is compatible when registry, repository and tag all match,
        or when it was declared a compatible substitute for ``other``.
        """
        if self.same_image(other):
            return True
        if self.compatible_substitute_for is not None:
            return self.compatible_substitute_for.is_compatible_with(other)
        return False

    def assert_compatible_with(self, other: ImageReference) -> None:
        """Raise if this image may not be used where ``other`` is expected.

        Raises:
            ImageIncompatibilityError: If `is_compatible_with` is False.
        """
        if not self.is_compatible_with(other):
            msg = (
                f"Image {self} is not compatible with {other}. "
                f"Declare it with as_compatible_substitute_for() if it is a drop-in replacement."
            )
            raise ImageIncompatibilityError(msg)
