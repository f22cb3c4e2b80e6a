"""Certificate and keystore generation.

The generation sequence is defined once, as a list of steps, and executed
in one of two ways: locally through ``subprocess`` for operator use, or
rendered as a POSIX shell script that the keystore generator Job or init
container runs inside the cluster.
"""

import contextlib
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from icecream import ic

from geoserver_deploy import console
from geoserver_deploy.core.host import KEYSTORE_OWNER, Host, secure_file
from geoserver_deploy.exceptions import CertificateGenerationError, MissingFileError
from geoserver_deploy.models import KeystoreParams

KEY_FILE = "server.key"
CSR_FILE = "server.csr"
CERT_FILE = "server.crt"
EXT_FILE = "server.ext"
PKCS12_FILE = "keystore.p12"
KEYSTORE_FILE = "keystore.jks"
PASSWORD_FILE = "keystore.password"

# Passwords reach openssl and keytool through the environment, never argv
PASSWORD_ENV = "KEYSTORE_PASSWORD"
RSA_BITS = 2048


@dataclass(frozen=True, slots=True)
class Step:
    """One external tool invocation of the generation sequence."""

    description: str
    argv: tuple[str, ...]


def subject(params: KeystoreParams) -> str:
    """Return the certificate subject for the parameters."""
    return f"/CN={params.domain}/O={params.organization}/C={params.country}"


def san_entries(params: KeystoreParams) -> list[str]:
    """Return subject-alternative-name entries in openssl config form.

    Covers the domain itself, localhost, the namespace's service wildcards,
    the cluster-wide service wildcard and the loopback address.
    """
    namespace = params.namespace or "default"
    dns_names: list[str] = []
    for name in (
        params.domain,
        "localhost",
        f"*.{namespace}.svc",
        f"*.{namespace}.svc.cluster.local",
        "*.svc.cluster.local",
    ):
        if name not in dns_names:
            dns_names.append(name)
    entries = [f"DNS.{i} = {name}" for i, name in enumerate(dns_names, start=1)]
    entries.append("IP.1 = 127.0.0.1")
    return entries


def extension_file(params: KeystoreParams) -> str:
    """Return the x509 extension file content used when self-signing."""
    lines = [
        "basicConstraints = CA:FALSE",
        "keyUsage = digitalSignature, nonRepudiation, keyEncipherment, dataEncipherment",
        "extendedKeyUsage = serverAuth",
        "subjectAltName = @alt_names",
        "",
        "[alt_names]",
        *san_entries(params),
    ]
    return "\n".join(lines) + "\n"


def certificate_steps(params: KeystoreParams) -> list[Step]:
    """Steps producing a private key and a self-signed certificate."""
    return [
        Step("Creating private key", ("openssl", "genrsa", "-out", KEY_FILE, str(RSA_BITS))),
        Step(
            "Creating certificate signing request",
            ("openssl", "req", "-new", "-key", KEY_FILE, "-out", CSR_FILE, "-subj", subject(params)),
        ),
        Step(
            "Creating self-signed certificate",
            (
                "openssl", "x509", "-req",
                "-in", CSR_FILE,
                "-signkey", KEY_FILE,
                "-out", CERT_FILE,
                "-days", str(params.validity_days),
                "-extfile", EXT_FILE,
            ),
        ),
    ]  # fmt: skip


def keystore_steps(params: KeystoreParams, *, cert_file: str = CERT_FILE, key_file: str = KEY_FILE) -> list[Step]:
    """Steps packaging a certificate and key into a JKS keystore."""
    return [
        Step(
            "Creating PKCS12 keystore",
            (
                "openssl", "pkcs12", "-export",
                "-in", cert_file,
                "-inkey", key_file,
                "-out", PKCS12_FILE,
                "-name", params.alias,
                "-passout", f"env:{PASSWORD_ENV}",
            ),
        ),
        Step(
            "Converting to JKS keystore",
            (
                "keytool", "-importkeystore",
                "-srckeystore", PKCS12_FILE,
                "-srcstoretype", "PKCS12",
                "-srcstorepass:env", PASSWORD_ENV,
                "-destkeystore", KEYSTORE_FILE,
                "-deststoretype", "JKS",
                "-deststorepass:env", PASSWORD_ENV,
                "-noprompt",
            ),
        ),
    ]  # fmt: skip


class KeystoreGenerator:
    """Produces a JKS keystore from freshly generated or existing PEM material.

    Attributes:
        params: Certificate and keystore parameters.
        password: Keystore password.
        work_dir: Directory the tools run in and write their output to.
        keep_pem: Whether the key and certificate are kept next to the keystore.
        owner: Optional (uid, gid) for the keystore and password file.

    """

    def __init__(
        self,
        params: KeystoreParams,
        password: str,
        *,
        work_dir: Path,
        keep_pem: bool = True,
        owner: tuple[int, int] | None = None,
    ) -> None:
        self.params = params
        self.password = password
        self.work_dir = work_dir
        self.keep_pem = keep_pem
        self.owner = owner

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"KeystoreGenerator(params={self.params!r}, work_dir={self.work_dir!r})"

    def steps(self) -> list[Step]:
        """Return the full self-signed generation sequence."""
        return [*certificate_steps(self.params), *keystore_steps(self.params)]

    @property
    def keystore_path(self) -> Path:
        return self.work_dir / KEYSTORE_FILE

    @property
    def password_path(self) -> Path:
        return self.work_dir / PASSWORD_FILE

    def _run_step(self, step: Step) -> None:
        console.step(f"{step.description}...")
        ic(step.argv)
        env = {**os.environ, PASSWORD_ENV: self.password}
        try:
            subprocess.run(step.argv, cwd=self.work_dir, env=env, check=True, capture_output=True)
        except FileNotFoundError as err:
            raise CertificateGenerationError(f"{step.description} failed: {step.argv[0]} not found") from err
        except subprocess.CalledProcessError as err:
            stderr_msg = err.stderr.decode().strip() if err.stderr else ""
            details = f" - {stderr_msg}" if stderr_msg else ""
            raise CertificateGenerationError(
                f"{step.description} failed (exit code {err.returncode}){details}"
            ) from err

    def _finish(self, intermediates: list[str]) -> Path:
        self.password_path.write_text(self.password)
        for path in (self.keystore_path, self.password_path):
            secure_file(path, owner=self.owner)
        self._remove(intermediates)
        return self.keystore_path

    def _remove(self, names: list[str]) -> None:
        for name in names:
            with contextlib.suppress(OSError):
                (self.work_dir / name).unlink(missing_ok=True)

    def generate(self) -> Path:
        """Run the self-signed sequence locally.

        Returns:
            Path of the generated keystore.

        Raises:
            ToolNotFoundError: If openssl or keytool is missing.
            CertificateGenerationError: If any step fails. Not retried.

        """
        Host().require("openssl", "keytool")
        console.action(f"Creating self-signed certificate for domain: {console.highlight(self.params.domain)}")
        self.work_dir.mkdir(parents=True, exist_ok=True)
        (self.work_dir / EXT_FILE).write_text(extension_file(self.params))

        intermediates = [CSR_FILE, EXT_FILE, PKCS12_FILE]
        if not self.keep_pem:
            intermediates += [KEY_FILE, CERT_FILE]
        try:
            for step in self.steps():
                self._run_step(step)
        except CertificateGenerationError:
            self._remove(intermediates)
            raise
        return self._finish(intermediates)

    def convert(self, cert_file: Path, key_file: Path) -> Path:
        """Package an existing PEM certificate and key into a keystore.

        Args:
            cert_file: Certificate PEM file.
            key_file: Private key PEM file.

        Returns:
            Path of the generated keystore.

        Raises:
            MissingFileError: If either input file does not exist.
            CertificateGenerationError: If any step fails.

        """
        Host().require("openssl", "keytool")
        for label, path in (("Certificate", cert_file), ("Private key", key_file)):
            if not path.is_file():
                raise MissingFileError(f"{label} file '{path}' not found.")
        console.action("Creating keystore from PEM files...")
        console.step(f"Certificate: {cert_file}")
        console.step(f"Private Key: {key_file}")
        self.work_dir.mkdir(parents=True, exist_ok=True)

        steps = keystore_steps(self.params, cert_file=str(cert_file.resolve()), key_file=str(key_file.resolve()))
        try:
            for step in steps:
                self._run_step(step)
        except CertificateGenerationError:
            self._remove([PKCS12_FILE])
            raise
        return self._finish([PKCS12_FILE])


def build_keystore_script(
    params: KeystoreParams,
    *,
    target_dir: str,
    secret_dir: str | None = None,
    generate: bool = True,
    owner: tuple[int, int] = KEYSTORE_OWNER,
) -> str:
    """Render the in-cluster keystore script.

    The script copies operator-supplied keystore bytes from the mounted
    HTTPS secret when they are non-empty, otherwise keeps an existing
    keystore, otherwise generates one (or, with ``generate`` off, waits for
    the generator Job to produce it).

    Args:
        params: Certificate and keystore parameters.
        target_dir: Shared directory the server reads the keystore from.
        secret_dir: Mount point of the HTTPS secret, if mounted.
        generate: Whether this script generates the keystore itself.
        owner: (uid, gid) that must own the keystore and password file.

    Returns:
        The script text, for ``sh -c``.

    """
    target = shlex.quote(f"{target_dir}/{KEYSTORE_FILE}")
    password_file = shlex.quote(f"{target_dir}/{PASSWORD_FILE}")
    chown = f"{owner[0]}:{owner[1]}"
    secure = [
        f"printf '%s' \"${PASSWORD_ENV}\" > {password_file}",
        f"chmod 600 {target} {password_file}",
        f"chown {chown} {target} {password_file}",
    ]

    lines = ["set -eu"]
    if secret_dir is not None:
        supplied = shlex.quote(f"{secret_dir}/{KEYSTORE_FILE}")
        lines += [
            f"if [ -s {supplied} ]; then",
            "  echo 'Using keystore supplied in the HTTPS secret'",
            f"  cp {supplied} {target}",
            *(f"  {line}" for line in secure),
            "  exit 0",
            "fi",
        ]
    lines += [
        f"if [ -s {target} ]; then",
        "  echo 'Keystore already present, skipping generation'",
        "  exit 0",
        "fi",
    ]
    if not generate:
        lines += [
            "echo 'Waiting for the keystore generator job'",
            f"until [ -s {target} ]; do sleep 5; done",
        ]
        return "\n".join(lines) + "\n"

    lines += [
        'WORK="$(mktemp -d)"',
        'cd "$WORK"',
        f"cat > {EXT_FILE} <<'EOF'",
        extension_file(params).rstrip("\n"),
        "EOF",
    ]
    for step in [*certificate_steps(params), *keystore_steps(params)]:
        lines += [f"echo {shlex.quote(step.description + '...')}", shlex.join(step.argv)]
    lines += [
        f"mv {KEYSTORE_FILE} {target}",
        *secure,
        "cd /",
        'rm -rf "$WORK"',
        "echo 'Keystore generated'",
    ]
    return "\n".join(lines) + "\n"
