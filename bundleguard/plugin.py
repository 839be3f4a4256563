"""
Host build tool integration.

`ProtectionPlugin` taps one of the host's asset hooks and runs a
`ProtectionPass` each time the host calls it. The pass owns the whole pipeline
(stage, normalize, install, invoke, reintegrate); the plugin only adapts it to
the hook flavor in use:

- `process-assets` (default): every asset of the compilation is a candidate,
  and protected output updates existing assets or emits new ones.
- `emit` (legacy hosts): only files listed by the compilation's chunks are
  candidates, and protected output is assigned straight into the asset table.
"""

import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from bundleguard.assets import Publisher, layout_root, reintegrate, stage
from bundleguard.blueprint import Blueprint, normalize, read_project_name, strip_target_fields
from bundleguard.constants import HostHookName, PassState, PLUGIN_NAME
from bundleguard.exceptions import BundleGuardError
from bundleguard.host import Asset, Compilation, Compiler, DoneCallback
from bundleguard.install import PackageInstaller
from bundleguard.invocation import InvocationController, InvocationOptions, InvocationResult
from bundleguard.settings import BundleGuardSettings

logger = logging.getLogger(__name__)


class ProtectionPass:
    """
    One run of the protection pipeline over one compilation.

    A pass walks IDLE → STAGING → NORMALIZING → INSTALLING → INVOKING →
    REINTEGRATING → DONE, or ends in FAILED from whichever state raised.
    It stages into freshly created temporary directories and removes them when
    it finishes, whatever the outcome.
    """

    def __init__(
        self,
        blueprint: Blueprint,
        settings: BundleGuardSettings,
        installer: PackageInstaller,
        controller: InvocationController,
        options: InvocationOptions,
        env: Mapping[str, str],
        context: str | Path | None = None,
    ):
        self.blueprint = blueprint
        self.settings = settings
        self.installer = installer
        self.controller = controller
        self.options = options
        self.env = env
        self.context = context
        self.state = PassState.IDLE
        self.normalized: Blueprint | None = None
        self.result: InvocationResult | None = None
        self.applied: list[str] = []

    def _enter(self, state: PassState) -> None:
        logger.debug(f"Protection pass: {self.state} -> {state}")
        self.state = state

    def run(self, assets: Mapping[str, Asset], candidates: Iterable[str], publish: Publisher) -> list[str]:
        """
        Protect `candidates` among `assets` and publish the tool's output.

        Returns:
            Names of the assets published from the tool's output.

        Raises:
            BundleGuardError: From whichever stage failed. Unexpected
                exceptions are wrapped so the host always gets a package error.
        """
        try:
            with (
                tempfile.TemporaryDirectory(prefix="bundleguard-in-", ignore_cleanup_errors=True) as input_dir,
                tempfile.TemporaryDirectory(prefix="bundleguard-out-", ignore_cleanup_errors=True) as output_dir,
            ):
                return self._run(assets, candidates, publish, Path(input_dir), Path(output_dir))
        except BundleGuardError:
            self._fail()
            raise
        except Exception as e:
            failed_in = self.state
            self._fail()
            raise BundleGuardError(f"Unexpected error while {failed_in}: {e}") from e

    def _fail(self) -> None:
        logger.debug(f"Protection pass failed while {self.state}")
        self.state = PassState.FAILED

    def _run(
        self,
        assets: Mapping[str, Asset],
        candidates: Iterable[str],
        publish: Publisher,
        input_dir: Path,
        output_dir: Path,
    ) -> list[str]:
        target_type = self.blueprint.target_type

        self._enter(PassState.STAGING)
        stage(assets, candidates, input_dir, target_type)

        self._enter(PassState.NORMALIZING)
        self.normalized = normalize(
            self.blueprint,
            self.env,
            tool_installed=self.installer.is_installed(),
            has_credentials=self.installer.has_credentials(),
            app_name=read_project_name(self.context),
            input_directory=input_dir,
            output_directory=output_dir,
        )

        self._enter(PassState.INSTALLING)
        self.installer.ensure(self.settings.required_version)

        self._enter(PassState.INVOKING)
        self.result = self.controller.invoke(self.normalized, self.options)

        self._enter(PassState.REINTEGRATING)
        self.applied = reintegrate(layout_root(output_dir, target_type), publish)

        self._enter(PassState.DONE)
        return self.applied


class ProtectionPlugin:
    """
    Protects a build's scripts and markup with the external protection tool.

    Example:
        compiler = Compiler("/path/to/project")
        ProtectionPlugin({"targets": {"web": {}}}).apply(compiler)

    Args:
        blueprint: Blueprint tree; None uses the default blueprint.
        settings: Package settings; loaded with `BundleGuardSettings.load()` when omitted.
        hook: Host hook to tap (`process-assets` or legacy `emit`).
        verbose: Overrides `settings.verbose`.
        buffer_size: Overrides `settings.buffer_size`.
        timeout: Seconds to wait for the tool.
        env: Environment to read license values from; os.environ when omitted.
        installer: Overrides the installer built from settings.
        controller: Overrides the invocation controller built from settings.
    """

    def __init__(
        self,
        blueprint: Blueprint | Mapping[str, Any] | None = None,
        settings: BundleGuardSettings | None = None,
        *,
        hook: HostHookName | str = HostHookName.PROCESS_ASSETS,
        verbose: bool | None = None,
        buffer_size: int | None = None,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        installer: PackageInstaller | None = None,
        controller: InvocationController | None = None,
    ):
        self.blueprint = strip_target_fields(Blueprint.create(blueprint))
        self.settings = settings or BundleGuardSettings.load()
        self.hook = HostHookName(hook)
        self.options = InvocationOptions(
            verbose=self.settings.verbose if verbose is None else verbose,
            buffer_size=buffer_size or self.settings.buffer_size,
            timeout=timeout,
        )
        self.env = env
        self.installer = installer or PackageInstaller(self.settings)
        self.controller = controller or InvocationController(self.settings.tool_binary)
        self.context: Path | None = None
        self.last_pass: ProtectionPass | None = None

    @property
    def target_type(self) -> str:
        return self.blueprint.target_type

    def apply(self, compiler: Compiler) -> None:
        """Tap the configured host hook."""
        self.context = compiler.context
        if self.hook is HostHookName.EMIT:
            compiler.hooks.emit.tap_async(PLUGIN_NAME, self._on_emit)
        else:
            compiler.hooks.process_assets.tap_async(PLUGIN_NAME, self._on_process_assets)

    def create_pass(self) -> ProtectionPass:
        return ProtectionPass(
            blueprint=self.blueprint.copy_tree(),
            settings=self.settings,
            installer=self.installer,
            controller=self.controller,
            options=self.options,
            env=os.environ if self.env is None else self.env,
            context=self.context,
        )

    def _on_process_assets(self, compilation: Compilation, callback: DoneCallback) -> None:
        def publish(name: str, source: Asset) -> None:
            if compilation.get_asset(name) is not None:
                compilation.update_asset(name, source)
            else:
                compilation.emit_asset(name, source)

        self._run_pass(compilation, list(compilation.assets), publish, callback)

    def _on_emit(self, compilation: Compilation, callback: DoneCallback) -> None:
        candidates = [filename for chunk in compilation.chunks for filename in chunk.files]
        self._run_pass(compilation, candidates, compilation.assets.__setitem__, callback)

    def _run_pass(
        self,
        compilation: Compilation,
        candidates: list[str],
        publish: Publisher,
        callback: DoneCallback,
    ) -> None:
        build_logger = compilation.get_logger(PLUGIN_NAME)
        protection_pass = self.create_pass()
        self.last_pass = protection_pass
        try:
            protection_pass.run(compilation.assets, candidates, publish)
        except BundleGuardError as e:
            build_logger.error(f"Protection failed: {e}")
            callback(e)
            return

        result = protection_pass.result
        if result is not None:
            if result.stdout:
                build_logger.info(result.stdout)
            if result.stderr:
                build_logger.info(result.stderr)
        build_logger.info(f"Protected {len(protection_pass.applied)} assets")
        callback()
