"""Channel -> product routing and per-product intent -> action mappings.

Loaded once from products.yaml; each product points at its own intent-mapping
JSON file (a list of {"intentName", "apiNames"} entries).
"""

import json
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from assistant.logging_config import get_logger

logger = get_logger("routing_service")


class RouteNotFoundError(Exception):
    def __init__(self, channel_name: str):
        self.channel_name = channel_name
        super().__init__(f"No product configured for channel '{channel_name}'")


class IntentNotFoundError(Exception):
    def __init__(self, route_id: str, intent_name: str):
        self.route_id = route_id
        self.intent_name = intent_name
        super().__init__(f"No intent mapping found for product='{route_id}' intent='{intent_name}'")


class IntentMapping(BaseModel):
    intent_name: str = Field(alias="intentName")
    api_names: list[str] = Field(default_factory=list, alias="apiNames")


class ProductDefinition(BaseModel):
    description: str = "This is an enterprise application."
    channels: list[str] = Field(default_factory=list)
    intent_mapping_file: Optional[str] = None
    knowledge_file: Optional[str] = None
    mock_delay_ms: Optional[int] = None


def load_products(products_file: str | Path) -> dict[str, ProductDefinition]:
    path = Path(products_file)
    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    definitions = raw.get("products") or {}
    return {product_id: ProductDefinition(**(definition or {})) for product_id, definition in definitions.items()}


def _load_intent_mappings(path: Path) -> dict[str, IntentMapping]:
    with path.open(encoding="utf-8") as f:
        entries = json.load(f)
    mappings = [IntentMapping.model_validate(entry) for entry in entries]
    return {mapping.intent_name: mapping for mapping in mappings}


class ProductRouter:
    def __init__(
        self,
        products: dict[str, ProductDefinition],
        intent_mappings: dict[str, dict[str, IntentMapping]],
        base_dir: Optional[Path] = None,
    ):
        self.products = products
        self.base_dir = base_dir
        self._intent_mappings = intent_mappings
        self._channel_to_product: dict[str, str] = {}
        for product_id, definition in products.items():
            for channel in definition.channels:
                self._channel_to_product[channel.lower()] = product_id
        logger.info(
            f"ProductRouter initialized: products={len(products)} channels={len(self._channel_to_product)}"
        )

    @classmethod
    def from_file(cls, products_file: str | Path) -> "ProductRouter":
        path = Path(products_file)
        products = load_products(path)
        base_dir = path.parent
        mappings: dict[str, dict[str, IntentMapping]] = {}
        for product_id, definition in products.items():
            if not definition.intent_mapping_file:
                logger.warning(f"No intent mapping file configured for product={product_id}")
                continue
            mapping_path = base_dir / definition.intent_mapping_file
            try:
                mappings[product_id] = _load_intent_mappings(mapping_path)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load intent mappings for product={product_id} from {mapping_path}: {e}")
                continue
            logger.info(f"Loaded {len(mappings[product_id])} intents for product={product_id}")
        return cls(products, mappings, base_dir=base_dir)

    def resolve_route(self, channel_name: str) -> str:
        product_id = self._channel_to_product.get((channel_name or "").lower())
        if product_id is None:
            logger.warning(
                f"No product for channel={channel_name}",
                extra={"context": {"configured_channels": sorted(self._channel_to_product)}},
            )
            raise RouteNotFoundError(channel_name)
        return product_id

    def map_intent(self, route_id: str, intent_name: str) -> list[str]:
        """Action names for an intent: exact match first, then case-insensitive."""
        by_intent = self._intent_mappings.get(route_id)
        if not by_intent:
            raise IntentNotFoundError(route_id, intent_name)

        mapping = by_intent.get(intent_name)
        if mapping is None:
            lowered = (intent_name or "").lower()
            mapping = next((m for name, m in by_intent.items() if name.lower() == lowered), None)
        if mapping is None:
            raise IntentNotFoundError(route_id, intent_name)
        return list(mapping.api_names)

    def known_intents(self, route_id: str) -> list[str]:
        return list(self._intent_mappings.get(route_id, {}))

    def describe(self, route_id: str) -> str:
        definition = self.products.get(route_id)
        return definition.description if definition else "This is an enterprise application."

    def knowledge_path(self, route_id: str) -> Optional[Path]:
        definition = self.products.get(route_id)
        if definition is None or not definition.knowledge_file or self.base_dir is None:
            return None
        return self.base_dir / definition.knowledge_file
