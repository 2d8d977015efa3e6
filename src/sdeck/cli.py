#!/usr/bin/env python3
"""
sdeck - Command Line Interface

Entry point for the sdeck package.
"""

import argparse
import logging
import os
import sys
import threading

from sdeck.__version__ import __version__


def _setup_logging(verbose=0):
    """Configure logging based on verbosity (filter out noisy PIL)."""
    if verbose >= 2:
        logging.basicConfig(level=logging.DEBUG, format='[%(levelname)s] %(name)s: %(message)s')
        logging.getLogger('PIL').setLevel(logging.WARNING)
    elif verbose == 1:
        logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="sdeck",
        description="Stream Deck control for Linux",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    sdeck detect                List connected Stream Decks
    sdeck color 0 ff0000        Key 0 solid red
    sdeck image 4 icon.png      Key 4 shows icon.png
    sdeck fill wallpaper.jpg    Spread one image over all keys
    sdeck clear                 Clear all keys
    sdeck brightness 40 --save  Set (and remember) brightness
    sdeck watch                 Print key presses
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("detect", help="List connected Stream Decks")

    color_parser = subparsers.add_parser("color", help="Fill a key with a solid color")
    color_parser.add_argument("key", type=int, help="Key index (0-14)")
    color_parser.add_argument("hex", help="Hex color code (e.g., ff0000 for red)")

    image_parser = subparsers.add_parser("image", help="Show an image file on a key")
    image_parser.add_argument("key", type=int, help="Key index (0-14)")
    image_parser.add_argument("path", help="Image file")

    fill_parser = subparsers.add_parser("fill", help="Spread an image over the whole panel")
    fill_parser.add_argument("path", help="Image file")

    clear_parser = subparsers.add_parser("clear", help="Clear one key, or all keys")
    clear_parser.add_argument("key", type=int, nargs="?", help="Key index (default: all)")

    bright_parser = subparsers.add_parser("brightness", help="Set backlight brightness")
    bright_parser.add_argument("percent", type=int, nargs="?",
                               help="0-100 (default: saved value)")
    bright_parser.add_argument("--save", "-s", action="store_true",
                               help="Remember this brightness")

    subparsers.add_parser("watch", help="Print key down/up events until Ctrl-C")

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "detect":
        return detect()
    elif args.command == "color":
        return send_color(args.key, args.hex)
    elif args.command == "image":
        return send_image(args.key, args.path)
    elif args.command == "fill":
        return fill_panel(args.path)
    elif args.command == "clear":
        return clear(args.key)
    elif args.command == "brightness":
        return set_brightness(args.percent, save=args.save)
    elif args.command == "watch":
        return watch()

    return 0


def _open_deck():
    """Open the first connected Stream Deck."""
    from sdeck.services.device import StreamDeck
    return StreamDeck()


def _parse_hex_color(hex_color):
    """Parse 'ff0000' / '#ff0000' into an (r, g, b) tuple."""
    hex_color = hex_color.lstrip('#')
    if len(hex_color) != 6:
        raise ValueError("Invalid hex color. Use format: ff0000")
    return tuple(int(hex_color[i:i + 2], 16) for i in (0, 2, 4))


def _format_device(dev):
    """Format a detected device for display."""
    name = dev.product or "Stream Deck"
    serial = f" serial {dev.serial}" if dev.serial else ""
    path = dev.path.decode(errors='replace') if isinstance(dev.path, bytes) else dev.path
    return f"{path} — {name} [{dev.vid_pid}]{serial}"


def detect():
    """List connected Stream Decks."""
    try:
        from sdeck.device_hid import find_devices

        devices = find_devices()
        if not devices:
            print("No Stream Deck detected.")
            return 1
        for i, dev in enumerate(devices, 1):
            print(f"[{i}] {_format_device(dev)}")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1


def send_color(key, hex_color):
    """Fill one key with a solid color."""
    try:
        r, g, b = _parse_hex_color(hex_color)
        with _open_deck() as deck:
            deck.fill_color(key, r, g, b)
        print(f"Key {key}: #{hex_color.lstrip('#')}")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1


def send_image(key, image_path):
    """Show an image file on one key."""
    if not os.path.exists(image_path):
        print(f"Error: File not found: {image_path}")
        return 1
    try:
        with _open_deck() as deck:
            deck.fill_image_from_file(key, image_path).result()
        print(f"Key {key}: {image_path}")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1


def fill_panel(image_path):
    """Spread an image file across every key."""
    if not os.path.exists(image_path):
        print(f"Error: File not found: {image_path}")
        return 1
    try:
        with _open_deck() as deck:
            deck.fill_image_on_all(image_path).result()
        print(f"Panel: {image_path}")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1


def clear(key=None):
    """Clear one key, or every key."""
    try:
        with _open_deck() as deck:
            if key is None:
                deck.clear_all_keys()
            else:
                deck.clear_key(key)
        print("Cleared" if key is None else f"Key {key}: cleared")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1


def set_brightness(percent=None, save=False):
    """Set backlight brightness, optionally persisting it."""
    try:
        from sdeck.conf import settings

        if percent is None:
            percent = settings.brightness
        with _open_deck() as deck:
            deck.set_brightness(percent)
        if save:
            settings.set_brightness(percent)
        print(f"Brightness: {percent}%")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1


def watch():
    """Print debounced key events until interrupted or the device fails."""
    try:
        deck = _open_deck()
    except Exception as e:
        print(f"Error: {e}")
        return 1

    failed = threading.Event()
    errors = []

    def on_error(err):
        errors.append(err)
        failed.set()

    deck.on_down = lambda key: print(f"down {key}", flush=True)
    deck.on_up = lambda key: print(f"up {key}", flush=True)
    deck.on_error = on_error

    print("Watching keys (Ctrl-C to stop)...")
    try:
        while not failed.wait(0.5):
            pass
    except KeyboardInterrupt:
        print("\nStopped.")
    finally:
        deck.close()

    if errors:
        print(f"Error: {errors[0]}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
