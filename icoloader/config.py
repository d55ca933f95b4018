"""
Configuration constants for icoloader.
"""


class Config:
    """Configuration constants for the ICO loader and its command line tool."""

    # Batch limits
    DEBUG_MODE = False
    DEBUG_LIMIT = 50

    # Output directory
    OUTPUT_DIR = 'out'

    # Files picked up when a directory is passed to the CLI
    ICON_EXTENSIONS = ('.ico',)

    LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'

    # Field mappings for directory listings exported to CSV
    FIELD_MAPPINGS = {
        "File": "File",
        "Index": "Index",
        "Width": "Width",
        "Height": "Height",
        "ColorCount": "Color Count",
        "Planes": "Planes",
        "BitsPerPixel": "Bits Per Pixel",
        "PayloadSize": "Payload Size",
        "PayloadOffset": "Payload Offset",
        "Format": "Format",
        "Selected": "Selected",
    }
