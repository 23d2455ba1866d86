# File: slicegen/naming.py
"""
slicegen - Naming Engine
=========================
Derives the canonical :class:`~slicegen.models.NamingSet` for a collection
and keeps the run-scoped :class:`CollectionRegistry` that emitters use to
resolve ``refTarget`` values into the exact symbols another collection
exports.

Every identifier a generated file mentions (table names, exports, API
paths, composable names, directories) comes from a NamingSet built here.
Nothing downstream concatenates names on its own.

Known limitation: pluralisation is rule based (see ``slicegen.utils``) and
does not know irregular nouns, so ``person`` becomes ``persons``.
"""

from __future__ import annotations

import functools
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from slicegen.errors import ValidationError
from slicegen.models import NamingSet
from slicegen.utils import (
    looks_plural,
    split_words,
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_plural,
    to_singular,
    to_snake_case,
)

logger: logging.Logger = logging.getLogger("slicegen.naming")


@functools.lru_cache(maxsize=None)
def derive_naming(raw_name: str, layer: str) -> NamingSet:
    """
    Build the NamingSet for *raw_name* inside *layer*.

    Pure and deterministic; the result is frozen and cached.

    Examples:
        >>> n = derive_naming("products", "shop")
        >>> (n.singular, n.plural, n.api_path, n.collection_key)
        ('product', 'products', 'shop-products', 'shopProducts')
    """
    if not split_words(raw_name or ""):
        raise ValidationError(f"Collection name {raw_name!r} contains no usable words.")
    if not split_words(layer or ""):
        raise ValidationError(f"Layer name {layer!r} contains no usable words.")

    if looks_plural(raw_name):
        plural: str = raw_name
        singular: str = to_singular(raw_name)
    else:
        singular = raw_name
        plural = to_plural(raw_name)

    pascal: str = to_pascal_case(singular)
    pascal_plural: str = to_pascal_case(plural)
    layer_pascal: str = to_pascal_case(layer)
    layer_camel: str = to_camel_case(layer)
    kebab_plural: str = to_kebab_case(plural)
    collection_key: str = layer_camel + pascal_plural

    naming: NamingSet = NamingSet(
        layer=layer,
        singular=singular,
        plural=plural,
        camel_case=to_camel_case(singular),
        camel_case_plural=to_camel_case(plural),
        pascal_case=pascal,
        pascal_case_plural=pascal_plural,
        layer_pascal_case=layer_pascal,
        layer_camel_case=layer_camel,
        kebab_case_plural=kebab_plural,
        api_path=f"{to_kebab_case(layer)}-{kebab_plural}",
        collection_key=collection_key,
        config_export=f"{collection_key}Config",
        schema_export=collection_key,
        prefixed_pascal=layer_pascal + pascal,
        prefixed_pascal_plural=layer_pascal + pascal_plural,
        composable_name=f"use{layer_pascal}{pascal_plural}",
        component_name=f"{layer_pascal}{pascal_plural}Form",
        validation_export=f"{layer_camel}{pascal}Schema",
        columns_export=f"{collection_key}Columns",
        id_param=f"{to_camel_case(singular)}Id",
        table_name=to_snake_case(f"{layer}_{plural}"),
        base_dir=f"layers/{layer}/collections/{kebab_plural}",
    )
    logger.debug("Derived naming for %s/%s → %s", layer, raw_name, collection_key)
    return naming


def _registry_key(layer: str, name: str) -> Tuple[str, str]:
    return layer, to_kebab_case(to_plural(name))


class CollectionRegistry:
    """
    Explicit registry of every collection taking part in one run.

    The orchestrator registers each NamingSet before emission starts, so a
    collection can reference a sibling that is generated later in the same
    batch.  Lookups accept any casing and either number (``category``,
    ``categories``, ``Categories``).
    """

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: Dict[Tuple[str, str], NamingSet] = {}

    def register(self, naming: NamingSet) -> NamingSet:
        key: Tuple[str, str] = (naming.layer, naming.kebab_case_plural)
        existing: Optional[NamingSet] = self._items.get(key)
        if existing is not None and existing != naming:
            raise ValidationError(
                f"Collection {naming.plural!r} registered twice in layer {naming.layer!r} "
                "with different names."
            )
        self._items[key] = naming
        return naming

    def get(self, layer: str, name: str) -> Optional[NamingSet]:
        return self._items.get(_registry_key(layer, name))

    def resolve(self, target: str, layer: str) -> NamingSet:
        """
        Return the NamingSet a ``refTarget`` points at.

        Targets not registered in this run are assumed to live in *layer*
        already and are derived with the same rules.
        """
        found: Optional[NamingSet] = self.get(layer, target)
        if found is not None:
            return found
        logger.debug("Reference %r not in this run; deriving in layer %s", target, layer)
        return derive_naming(target, layer)

    def layers(self) -> List[str]:
        return sorted({layer for layer, _ in self._items})

    def in_layer(self, layer: str) -> List[NamingSet]:
        return [n for (lyr, _), n in self._items.items() if lyr == layer]

    def __contains__(self, naming: object) -> bool:
        if not isinstance(naming, NamingSet):
            return False
        return (naming.layer, naming.kebab_case_plural) in self._items

    def __iter__(self) -> Iterator[NamingSet]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"<CollectionRegistry {len(self._items)} collection(s)>"


__all__: List[str] = [
    "derive_naming",
    "CollectionRegistry",
]

logger.debug("slicegen.naming loaded.")
