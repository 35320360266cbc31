# run.py
# Entry point. Config and wiring only. No logic lives here.
#
# Keys come from CIPHER_PRESS_* environment variables (or .env); see
# config.py. Without them a throwaway key pair is generated per run.

import logging

from rich.logging import RichHandler

from cipher_press import display
from cipher_press.config import PressSettings
from cipher_press.ecies import ECIESEngine
from cipher_press.errors import PressError
from cipher_press.merkle import MerkleLedger
from cipher_press.models import PathEvent
from cipher_press.press import PressService
from cipher_press.receipts import ReceiptStore

# Sample inputs. Each exercises a different tree shape.
SAMPLES = [
    # Smallest pair: two leaves and one root.
    "ab",

    # Repeated sub-tree: the "ab" pair node is shared by both halves.
    "abab",

    # Odd length: the trailing leaf is carried up a layer.
    "Hello World",

    # Multi-byte characters, including a 4-byte emoji.
    "Hi 🌎 — héllo",

    # Only characters already seen by this ledger.
    "baba",
]


class ShowingLedger(MerkleLedger):
    """A MerkleLedger that renders each call's path events."""

    def build_tree(self, text: str) -> list[PathEvent]:
        events = super().build_tree(text)
        display.path_events(events)
        return events


def main() -> None:
    settings = PressSettings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=display.console, show_path=False)],
    )

    service = PressService(
        ShowingLedger(),
        ECIESEngine(settings.private_key),
        max_workers=settings.max_workers,
    )
    receipts = ReceiptStore(
        capacity=settings.receipt_capacity,
        ttl_seconds=settings.receipt_ttl_seconds,
    )
    display.banner(settings.recipient_public_key, settings.max_workers)

    pressed = []
    for text in SAMPLES:
        try:
            display.press_start(text)
            receipt = service.press_receipt(text, settings.recipient_public_key)
            receipts.put(receipt)
            display.press_complete(receipt)

            display.release_start(receipt.final_hash)
            display.release_complete(service.release(receipt.final_hash), text)
            pressed.append(receipt)
        except PressError as exc:
            display.halt(f"{type(exc).__name__}: {exc}")

    display.receipt_summary([r for r in pressed if r.request_id in receipts])


if __name__ == "__main__":
    main()
