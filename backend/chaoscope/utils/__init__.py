from chaoscope.utils.paths import resolve_output_path

__all__ = ["resolve_output_path"]
