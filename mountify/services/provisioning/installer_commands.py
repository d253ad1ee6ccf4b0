"""
PowerShell command builders for MSI install/uninstall.

Builders are pure: they return argument lists for ProcessRunner and never
execute anything, so the exact command shape can be tested off Windows.
"""

import base64
from dataclasses import dataclass, field
from typing import List, Sequence

MSI_SILENT_FLAGS = ("/qn", "/norestart")
# msiexec: "success, reboot required" - expected with /norestart
MSI_REBOOT_REQUIRED = 3010

UNINSTALL_REGISTRY_KEYS = (
    r"HKLM:\Software\Wow6432Node\Microsoft\Windows\CurrentVersion\Uninstall\*",
    r"HKLM:\Software\Microsoft\Windows\CurrentVersion\Uninstall\*",
)

_POWERSHELL = ["powershell.exe", "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass"]


@dataclass(frozen=True)
class InstallPlan:
    """One elevated session that runs every install directive in order."""

    args: List[str]
    directives: List[List[str]] = field(default_factory=list)


def ps_quote(value: str) -> str:
    """Single-quoted PowerShell literal."""
    return "'" + value.replace("'", "''") + "'"


def encode_command(script: str) -> str:
    """Encoding expected by ``powershell -EncodedCommand`` (base64 of UTF-16LE)."""
    return base64.b64encode(script.encode("utf-16-le")).decode("ascii")


def build_install_plan(msi_paths: Sequence[str]) -> InstallPlan:
    """
    Install every MSI inside a single elevated PowerShell, so the user sees
    exactly one UAC prompt however many packages are missing.

    The inner script stops at the first failing msiexec and exits with its
    code; the outer (unelevated) PowerShell forwards that exit code.
    """
    if not msi_paths:
        raise ValueError("build_install_plan needs at least one MSI")

    directives = [["msiexec.exe", "/i", path, *MSI_SILENT_FLAGS] for path in msi_paths]

    inner_lines = ["$ErrorActionPreference = 'Stop'"]
    for directive in directives:
        program, *arguments = directive
        # msiexec receives one joined command line, so the path needs its own quotes
        quoted = [ps_quote(f'"{arg}"' if " " in arg else arg) for arg in arguments]
        inner_lines.append(
            f"$p = Start-Process -FilePath {ps_quote(program)} "
            f"-ArgumentList {','.join(quoted)} -Wait -PassThru"
        )
        inner_lines.append(
            f"if ($p.ExitCode -ne 0 -and $p.ExitCode -ne {MSI_REBOOT_REQUIRED}) "
            "{ exit $p.ExitCode }"
        )
    inner_lines.append("exit 0")
    inner_script = "\n".join(inner_lines)

    elevated_args = ",".join(
        ps_quote(arg)
        for arg in ("-NoProfile", "-ExecutionPolicy", "Bypass", "-EncodedCommand", encode_command(inner_script))
    )
    outer_script = (
        "$ErrorActionPreference = 'Stop'; "
        "$p = Start-Process -FilePath 'powershell.exe' -Verb RunAs -Wait -PassThru "
        f"-WindowStyle Hidden -ArgumentList {elevated_args}; "
        "exit $p.ExitCode"
    )
    return InstallPlan(args=[*_POWERSHELL, "-Command", outer_script], directives=directives)


def build_uninstall_script(display_name: str) -> str:
    """
    Find ``display_name`` in both uninstall hives and remove it via msiexec /x.

    Matching is a case-insensitive substring match on DisplayName; when
    several entries match, an exact name wins over "<name> <version>", which
    wins over any other hit. Non-MSI uninstallers are left alone.
    """
    keys = ",".join(ps_quote(key) for key in UNINSTALL_REGISTRY_KEYS)
    return "\n".join(
        [
            "$ErrorActionPreference = 'SilentlyContinue'",
            f"$name = {ps_quote(display_name)}",
            "$pattern = '*' + [WildcardPattern]::Escape($name) + '*'",
            f"$apps = @(Get-ItemProperty {keys} | "
            "Where-Object { $_.DisplayName -like $pattern -and $_.UninstallString })",
            "$app = $apps | Sort-Object @{ Expression = {",
            "    if ($_.DisplayName -eq $name) { 0 }",
            "    elseif ($_.DisplayName -like ([WildcardPattern]::Escape($name) + ' *')) { 1 }",
            "    else { 2 } } } | Select-Object -First 1",
            "if ($app -and $app.UninstallString -match 'MsiExec') {",
            "    $productCode = $app.UninstallString -replace '.*({[^}]+}).*', '$1'",
            "    $proc = Start-Process -FilePath 'msiexec.exe' "
            f"-ArgumentList '/x',$productCode,{','.join(ps_quote(f) for f in MSI_SILENT_FLAGS)} "
            "-Verb RunAs -Wait -PassThru",
            "    exit $proc.ExitCode",
            "}",
            "exit 0",
        ]
    )


def build_uninstall_command(display_name: str) -> List[str]:
    return [*_POWERSHELL, "-EncodedCommand", encode_command(build_uninstall_script(display_name))]


def tail(text: str, max_lines: int = 5) -> str:
    lines = [line for line in (text or "").strip().splitlines() if line.strip()]
    return "\n".join(lines[-max_lines:])
