"""Provider priority configuration for field-level merge decisions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from mediabridge.config.models import PrioritySettings
from mediabridge.shared.constants import PriorityDefaults

logger = logging.getLogger(__name__)


class DataType(str, Enum):
    """Kinds of data with their own provider priority list."""

    EPISODE_THUMBNAIL = "episode_thumbnail"
    IMAGE_QUALITY = "image_quality"
    ANIME_METADATA = "anime_metadata"
    MANGA_CHAPTER = "manga_chapter"
    CHARACTER = "character"


@dataclass(frozen=True)
class ProviderPriorityConfig:
    """Provider priority lists, highest priority first.

    Example:
        >>> config = ProviderPriorityConfig()
        >>> config.sort_providers_by_priority(["kitsu", "custom", "tmdb"], DataType.IMAGE_QUALITY)
        ['tmdb', 'kitsu', 'custom']
    """

    priorities: Mapping[DataType, tuple[str, ...]] = field(
        default_factory=lambda: {
            DataType.EPISODE_THUMBNAIL: tuple(PriorityDefaults.EPISODE_THUMBNAIL),
            DataType.IMAGE_QUALITY: tuple(PriorityDefaults.IMAGE_QUALITY),
            DataType.ANIME_METADATA: tuple(PriorityDefaults.ANIME_METADATA),
            DataType.MANGA_CHAPTER: tuple(PriorityDefaults.MANGA_CHAPTER),
            DataType.CHARACTER: tuple(PriorityDefaults.CHARACTER),
        }
    )

    @classmethod
    def from_settings(cls, settings: PrioritySettings) -> ProviderPriorityConfig:
        return cls(
            {
                data_type: tuple(getattr(settings, data_type.value))
                for data_type in DataType
            }
        )

    def priority_for(self, data_type: DataType | str) -> list[str]:
        """Priority list for ``data_type``; unknown types have none."""
        try:
            data_type = DataType(data_type)
        except ValueError:
            logger.debug("No provider priority defined for %s", data_type)
            return []
        return list(self.priorities.get(data_type, ()))

    def sort_providers_by_priority(
        self,
        providers: Iterable[str],
        data_type: DataType | str,
    ) -> list[str]:
        """Stable sort: listed providers by rank, unlisted ones after in given order."""
        ranking = {
            provider_id: index
            for index, provider_id in enumerate(self.priority_for(data_type))
        }
        provider_list = list(providers)
        return sorted(
            provider_list,
            key=lambda provider_id: ranking.get(provider_id.lower(), len(ranking)),
        )
