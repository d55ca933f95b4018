"""
ICO Loader command line tool.

Commands:
- info:    list the image directory of one or more .ico files
- convert: decode the representative image of each .ico file to PNG
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from typing import Dict, List, Optional, Union

import pandas as pd
from tqdm import tqdm

from .config import Config
from .exceptions import IcoError
from .loader import IconLoader


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def append_timestamp(filename: str) -> str:
    """
    Append current timestamp to filename.

    Args:
        filename: Original filename with extension

    Returns:
        Filename with timestamp appended before extension
    """
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    file_name, file_extension = os.path.splitext(filename)
    return f"{file_name}_{timestamp}{file_extension}"


def collect_icon_files(paths: List[str]) -> List[str]:
    """Expand directories into the icon files they contain (sorted, non-recursive)."""
    files = []
    for path in paths:
        if os.path.isdir(path):
            for name in sorted(os.listdir(path)):
                if name.lower().endswith(Config.ICON_EXTENSIONS):
                    files.append(os.path.join(path, name))
        else:
            files.append(path)

    if Config.DEBUG_MODE and len(files) > Config.DEBUG_LIMIT:
        print(f"[!] DEBUG MODE: Processing limited to {Config.DEBUG_LIMIT} files")
        files = files[:Config.DEBUG_LIMIT]
    return files


# ============================================================================
# DATA EXPORTER
# ============================================================================

class DataExporter:
    """Handles exporting directory listings to CSV files."""

    @staticmethod
    def to_dataframe(rows: List[Dict]) -> pd.DataFrame:
        """Rename columns with Config.FIELD_MAPPINGS, keeping its column order."""
        df = pd.DataFrame(rows)
        columns = [col for col in Config.FIELD_MAPPINGS if col in df.columns]
        return df[columns].rename(columns=Config.FIELD_MAPPINGS)

    @staticmethod
    def export_to_csv(df: pd.DataFrame, base_filename: str, output_dir: str = None) -> str:
        """
        Export DataFrame to CSV with timestamp.

        Args:
            df: DataFrame to export
            base_filename: Base filename (timestamp will be appended)
            output_dir: Output directory (default: Config.OUTPUT_DIR)

        Returns:
            Full path of exported file
        """
        if output_dir is None:
            output_dir = Config.OUTPUT_DIR

        os.makedirs(output_dir, exist_ok=True)

        filename = append_timestamp(base_filename)
        filepath = os.path.join(output_dir, filename)

        df.to_csv(filepath, index=False)
        print(f"[OK] Exported: {filepath}")
        return filepath


# ============================================================================
# COMMANDS
# ============================================================================

def describe_icon_files(file_paths: List[str]) -> List[Dict]:
    """Directory rows of every readable icon, tagged with the file name."""
    rows = []
    for path in file_paths:
        try:
            entries = IconLoader.describe_file(path)
        except (OSError, IcoError) as e:
            print(f"  [ERROR] {os.path.basename(path)}: {e}")
            continue
        for entry in entries:
            entry["File"] = os.path.basename(path)
            rows.append(entry)
    return rows


def decode_icon_file(
    ico_path: str,
    output_dir: str = None,
    scale: Union[int, float] = 1,
    target_width: int = None,
    target_height: int = None,
) -> str:
    """
    Decode a single .ico file into a PNG of its representative image.

    Args:
        ico_path: Path to the .ico file
        output_dir: Directory to place the .png (default: Config.OUTPUT_DIR)
        scale: Optional scale factor for output image
        target_width: Optional explicit width
        target_height: Optional explicit height

    Returns:
        Path to the generated .png file, or empty string on failure
    """
    if output_dir is None:
        output_dir = Config.OUTPUT_DIR
    os.makedirs(output_dir, exist_ok=True)

    base_name = os.path.splitext(os.path.basename(ico_path))[0]
    out_path = os.path.join(output_dir, f"{base_name}.png")

    try:
        bitmap = IconLoader.decode_file(ico_path)
        bitmap.save_to_png(
            out_path,
            scale=scale,
            target_width=target_width,
            target_height=target_height,
        )
    except (OSError, IcoError) as e:
        tqdm.write(f"  [ERROR] Decode failed ({os.path.basename(ico_path)}): {e}")
        return ""

    tqdm.write(f"  [OK] Decoded -> {os.path.basename(out_path)}")
    return out_path


def decode_icon_files(
    file_paths: List[str],
    output_dir: str = None,
    scale: Union[int, float] = 1,
    target_width: int = None,
    target_height: int = None,
) -> List[str]:
    """
    Decode multiple .ico files to PNG.

    Returns:
        List of generated .png file paths
    """
    if not file_paths:
        print("No .ico files to decode.")
        return []

    outputs: List[str] = []
    for path in tqdm(file_paths, desc="Decoding icons"):
        out = decode_icon_file(
            path,
            output_dir=output_dir,
            scale=scale,
            target_width=target_width,
            target_height=target_height,
        )
        if out:
            outputs.append(out)

    print(f"\n[OK] Decoded {len(outputs)}/{len(file_paths)} files")
    return outputs


def run_info(args: argparse.Namespace) -> int:
    rows = describe_icon_files(collect_icon_files(args.paths))
    if not rows:
        print("No icons found.")
        return 1

    df = DataExporter.to_dataframe(rows)
    print(df.to_string(index=False))
    if args.csv:
        DataExporter.export_to_csv(df, 'ico_directory.csv', output_dir=args.output)
    return 0


def run_convert(args: argparse.Namespace) -> int:
    outputs = decode_icon_files(
        collect_icon_files(args.paths),
        output_dir=args.output,
        scale=args.scale,
        target_width=args.width,
        target_height=args.height,
    )
    return 0 if outputs else 1


# ============================================================================
# MAIN
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='icoloader', description="Inspect and decode ICO files.")
    parser.add_argument('--debug', action='store_true', help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest='command', required=True)

    info = subparsers.add_parser('info', help="List the images stored in ICO files.")
    info.add_argument('paths', nargs='+', help="ICO files or directories.")
    info.add_argument('--csv', action='store_true', help="Export the listing to CSV.")
    info.add_argument('-o', '--output', default=None, help="CSV output directory.")
    info.set_defaults(func=run_info)

    convert = subparsers.add_parser('convert', help="Decode ICO files to PNG.")
    convert.add_argument('paths', nargs='+', help="ICO files or directories.")
    convert.add_argument('-o', '--output', default=None, help="PNG output directory.")
    convert.add_argument('--scale', type=float, default=1, help="Scale factor.")
    convert.add_argument('--width', type=int, default=None, help="Target width.")
    convert.add_argument('--height', type=int, default=None, help="Target height.")
    convert.set_defaults(func=run_convert)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format=Config.LOG_FORMAT,
    )
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
