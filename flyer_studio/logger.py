"""
Run Logger for Flyer Studio
Keeps a per-session execution log of branding and generation calls and renders a summary
"""

import time
from datetime import datetime
from typing import Optional, Dict, Any, List


class RunLogger:
    """Logger for tracking one wizard session and generating summaries"""

    PREFIX = "[FlyerStudio]"

    def __init__(self, echo: bool = True):
        self.start_time = time.time()
        self.echo = echo
        self.logs: List[Dict[str, Any]] = []
        self.errors: List[str] = []
        self.warnings: List[str] = []

        self.branding_results: List[Dict[str, Any]] = []
        self.generation_results: List[Dict[str, Any]] = []

    def log(self, message: str, level: str = "INFO"):
        """Add a log entry"""
        entry = {
            "timestamp": datetime.now().isoformat(),
            "elapsed": round(time.time() - self.start_time, 3),
            "level": level,
            "message": message
        }
        self.logs.append(entry)
        if self.echo:
            print(f"{self.PREFIX} [{level}] {message}")

    def add_error(self, message: str):
        """Add an error"""
        self.errors.append(message)
        self.log(message, level="ERROR")

    def add_warning(self, message: str):
        """Add a warning"""
        self.warnings.append(message)
        self.log(message, level="WARN")

    def set_branding_result(
        self,
        sequence: int,
        model_id: str,
        latency: float,
        success: bool,
        hex_color: Optional[str] = None,
        vibe: Optional[str] = None,
        fallback: bool = False,
        stale: bool = False,
        error: Optional[str] = None
    ):
        """Record the outcome of one branding extraction"""
        result = {
            "sequence": sequence,
            "model": model_id,
            "latency": round(latency, 3),
            "success": success,
            "hex": hex_color,
            "vibe": vibe,
            "fallback": fallback,
            "stale": stale,
            "error": error
        }
        self.branding_results.append(result)

        if not success:
            # Branding is cosmetic: failures are warnings, never user-facing errors
            self.add_warning(f"Branding #{sequence} failed after {latency:.2f}s: {error}")
        elif stale:
            self.log(f"Branding #{sequence} discarded, a newer logo was uploaded")
        elif fallback:
            self.add_warning(f"Branding #{sequence} returned unparseable output, using {hex_color} / {vibe}: {error}")
        else:
            self.log(f"Branding #{sequence} completed in {latency:.2f}s: {hex_color} ({vibe})")

    def set_generation_result(
        self,
        model_id: str,
        latency: float,
        success: bool,
        aspect_ratio: str,
        quality: str,
        image_parts: int = 0,
        error: Optional[str] = None
    ):
        """Record the outcome of one flyer generation"""
        result = {
            "model": model_id,
            "latency": round(latency, 3),
            "success": success,
            "aspect_ratio": aspect_ratio,
            "quality": quality,
            "image_parts": image_parts,
            "error": error
        }
        self.generation_results.append(result)
        if success:
            self.log(f"Flyer generated in {latency:.2f}s ({aspect_ratio}, {quality}, {image_parts} input images)")
        else:
            self.add_error(f"Flyer generation failed: {error}")

    def get_summary(self) -> str:
        """Render the execution summary"""
        total_time = time.time() - self.start_time

        lines = []
        lines.append("=" * 50)
        lines.append("FLYER STUDIO - SESSION SUMMARY")
        lines.append("=" * 50)
        lines.append(f"Session Time: {total_time:.2f}s")
        lines.append(f"Timestamp: {datetime.now().isoformat()}")
        lines.append("")

        if self.branding_results:
            lines.append("--- Branding ---")
            for r in self.branding_results:
                if not r["success"]:
                    status = f"FAILED ({r['error']})"
                elif r["stale"]:
                    status = "DISCARDED"
                elif r["fallback"]:
                    status = f"FALLBACK {r['hex']}"
                else:
                    status = f"OK {r['hex']} ({r['vibe']})"
                lines.append(f"  #{r['sequence']} {r['model']}: {status} ({r['latency']:.2f}s)")
            lines.append("")

        if self.generation_results:
            lines.append("--- Generation ---")
            for r in self.generation_results:
                status = "OK" if r["success"] else f"FAILED ({r['error']})"
                lines.append(f"  {r['aspect_ratio']} {r['quality']} {r['model']}: {status} ({r['latency']:.2f}s)")
            lines.append("")

        if self.errors:
            lines.append("--- Errors ---")
            for error in self.errors:
                lines.append(f"  ! {error}")
            lines.append("")

        if self.warnings:
            lines.append("--- Warnings ---")
            for warning in self.warnings:
                lines.append(f"  ? {warning}")
            lines.append("")

        lines.append("=" * 50)
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Export log data as dictionary"""
        return {
            "total_time": time.time() - self.start_time,
            "branding_results": self.branding_results,
            "generation_results": self.generation_results,
            "errors": self.errors,
            "warnings": self.warnings,
            "logs": self.logs
        }
