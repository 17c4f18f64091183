"""JSON reporter for structured output.

Writes presigned requests as JSON, so scripts can pick up the URLs without
parsing console output.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from presigner.models import PresignResult, ResultStatus
from presigner.reporters.base import Reporter


class JsonReporter(Reporter):
    """JSON reporter for structured output.

    Args:
        output_path: Optional file path to write JSON output
    """

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = output_path

    def on_presign_start(self, provider_name: str, object_key: str) -> None:
        """No-op for JSON reporter."""
        pass

    def on_presign_complete(self, result: PresignResult) -> None:
        """No-op - data comes from the run results."""
        pass

    def on_run_complete(self, results: dict[str, PresignResult]) -> dict:
        """Generates and outputs JSON data.

        Args:
            results: Dictionary of presign results by provider key

        Returns:
            The generated JSON data as a dictionary
        """
        output = self._generate_output(results)

        if self.output_path:
            self._write_to_file(output)

        return output

    def _generate_output(self, results: dict[str, PresignResult]) -> dict:
        ok_count = sum(1 for r in results.values() if r.status == ResultStatus.OK)
        total = len(results)

        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "providers": {key: result.to_dict() for key, result in results.items()},
            "summary": {
                "total_providers": total,
                "ok": ok_count,
                "errors": total - ok_count,
                "all_ok": ok_count == total and total > 0,
            },
        }

    def _write_to_file(self, output: dict) -> None:
        path = Path(self.output_path)

        # Create parent directories if needed
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.output_path, "w") as f:
            json.dump(output, f, indent=2)
