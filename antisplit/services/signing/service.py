"""
Signing Adapter.

Signs the repackaged artifact with ``apksigner``. Signing problems never fail
the run: they produce an UnsignedFallback outcome and the unsigned artifact is
delivered at the requested output path instead.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from ...core.config import SigningConfig
from ...core.exceptions import ToolExecutionError, ToolNotFoundError
from ...core.logging import get_logger
from ...models.merge import Signed, SigningOutcome, UnsignedFallback
from ...toolchain.location import ToolchainLocation
from ...toolchain.runner import ToolRunner

logger = get_logger(__name__)


class SigningAdapter:
    """Delegates signing to the external toolchain."""

    def __init__(
        self,
        location: ToolchainLocation,
        config: SigningConfig | None = None,
        runner: ToolRunner | None = None,
    ) -> None:
        self.location = location
        self.config = config or SigningConfig()
        self.runner = runner or ToolRunner()

    def build_arguments(self, unsigned: Path, output: Path, keystore: Path) -> list[str]:
        """``apksigner sign`` arguments; credentials come from configuration."""
        args = ["sign", "--ks", str(keystore)]
        if self.config.keystore_password is not None:
            args += ["--ks-pass", f"pass:{self.config.keystore_password.get_secret_value()}"]
        if self.config.key_alias:
            args += ["--ks-key-alias", self.config.key_alias]
        if self.config.key_password is not None:
            args += ["--key-pass", f"pass:{self.config.key_password.get_secret_value()}"]
        args += ["--out", str(output), str(unsigned)]
        return args

    async def sign(self, unsigned: Path, output: Path, keystore: Path | None = None) -> SigningOutcome:
        """Sign ``unsigned`` into ``output``.

        Returns:
            Signed on success, otherwise UnsignedFallback with the reason.

        Raises:
            OSError: If the unsigned artifact cannot be copied to ``output``.
        """
        if keystore is None:
            logger.info("No keystore supplied, leaving artifact unsigned")
            return self._fallback(unsigned, output, "no keystore supplied")

        output.parent.mkdir(parents=True, exist_ok=True)
        try:
            apksigner = self.location.require("apksigner")
            result = await self.runner.run(apksigner, self.build_arguments(unsigned, output, keystore))
        except (ToolNotFoundError, ToolExecutionError) as e:
            logger.warning("Signing unavailable", error=e.message)
            return self._fallback(unsigned, output, e.message)

        if not result.is_success:
            reason = f"apksigner exited with code {result.exit_code}: {result.stderr.strip()[:300]}"
            logger.warning("Signing failed", exit_code=result.exit_code)
            return self._fallback(unsigned, output, reason)
        if not output.is_file():
            logger.warning("apksigner produced no output", output=str(output))
            return self._fallback(unsigned, output, "apksigner produced no output file")

        logger.info("Signed artifact", output=str(output), keystore=str(keystore))
        return Signed(artifact_path=output, keystore_path=keystore)

    def _fallback(self, unsigned: Path, output: Path, reason: str) -> UnsignedFallback:
        if unsigned.resolve() != output.resolve():
            output.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(unsigned, output)
        return UnsignedFallback(artifact_path=output, reason=reason)
