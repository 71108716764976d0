"""
Booking deduplication for bulk syncs.

Hard dedupe keeps the first record seen per Bokun booking id. Soft dedupe
flags records sharing (customer email, booking date, booking time) with an
earlier record but keeps them: two genuine customers can collide on that key.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from .booking_record import ExternalBookingRecord

logger = logging.getLogger(__name__)


@dataclass
class ProbableDuplicate:
    kept_booking_id: str
    booking_id: str
    customer_email: str
    booking_date: str
    booking_time: str


@dataclass
class DedupeStats:
    input_count: int = 0
    output_count: int = 0
    duplicates_dropped: int = 0
    probable_duplicates: List[ProbableDuplicate] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "input_count": self.input_count,
            "output_count": self.output_count,
            "duplicates_dropped": self.duplicates_dropped,
            "probable_duplicates": len(self.probable_duplicates),
        }


def deduplicate(records: List[ExternalBookingRecord]) -> Tuple[List[ExternalBookingRecord], DedupeStats]:
    stats = DedupeStats(input_count=len(records))

    unique: List[ExternalBookingRecord] = []
    seen_ids = set()
    for record in records:
        if record.booking_id in seen_ids:
            stats.duplicates_dropped += 1
            logger.info(f"Skipping duplicate booking: {record.booking_id} ({record.customer_name})")
            continue
        seen_ids.add(record.booking_id)
        unique.append(record)

    first_by_key = {}
    for record in unique:
        key = (record.customer_email, record.booking_date.isoformat(), record.booking_time)
        if key in first_by_key:
            duplicate = ProbableDuplicate(
                kept_booking_id=first_by_key[key],
                booking_id=record.booking_id,
                customer_email=key[0],
                booking_date=key[1],
                booking_time=key[2],
            )
            stats.probable_duplicates.append(duplicate)
            logger.warning(
                f"Potential duplicate booking {record.booking_id}: same email/date/time "
                f"as {duplicate.kept_booking_id} ({key[0]} {key[1]} {key[2]})"
            )
        else:
            first_by_key[key] = record.booking_id

    stats.output_count = len(unique)
    if stats.duplicates_dropped:
        logger.info(f"Removed {stats.duplicates_dropped} duplicate booking IDs")

    return unique, stats
