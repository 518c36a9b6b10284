"""
Kernels REST API client.
Lists kernel specs and starts kernels on the Jupyter server.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from ..core.config import ClientConfig
from ..core.exceptions import KernelsApiError
from ..core.logging import LoggerMixin


@dataclass(frozen=True)
class KernelSpec:
    name: str
    display_name: str
    language: str


class KernelsApi(LoggerMixin):
    """Thin wrapper over ``/api/kernelspecs`` and ``/api/kernels``."""

    def __init__(self, config: ClientConfig, http: Optional[requests.Session] = None):
        self.config = config
        self.http = http or requests.Session()

    def list_kernel_specs(self) -> List[KernelSpec]:
        """Get the kernel specs the server offers."""
        payload = self._request('GET', '/api/kernelspecs', expected=(200,))
        specs = []
        for name, entry in (payload.get('kernelspecs') or {}).items():
            spec = entry.get('spec') or {}
            specs.append(KernelSpec(
                name=entry.get('name', name),
                display_name=spec.get('display_name', name),
                language=spec.get('language', '')
            ))

        self.log_debug("📋 [KernelsApi] Listed kernel specs", {
            "count": len(specs),
            "names": [spec.name for spec in specs]
        })
        return specs

    def start_kernel(self, spec_name: str, path: Optional[str] = None) -> Dict[str, Any]:
        """Start a kernel and return its model (``{'id': ..., 'name': ...}``)."""
        body = {'name': spec_name}
        if path:
            body['path'] = path

        kernel = self._request('POST', '/api/kernels', json=body, expected=(200, 201))
        if not isinstance(kernel.get('id'), str):
            raise KernelsApiError("Kernel start response has no id", {"response": kernel})

        self.log_info("🚀 [KernelsApi] Kernel started", {
            "kernel_id": kernel['id'],
            "spec_name": spec_name,
            "path": path
        })
        return kernel

    def _request(self, method: str, path: str, expected=(200,), **kwargs) -> Dict[str, Any]:
        url = f"{self.config.jupyter_url}{path}"
        try:
            response = self.http.request(
                method,
                url,
                headers=self.config.get_jupyter_headers(),
                timeout=self.config.request_timeout,
                **kwargs
            )
        except requests.exceptions.RequestException as e:
            self.log_error("❌ [KernelsApi] Request failed", {
                "method": method,
                "url": url,
                "error": str(e),
                "error_type": type(e).__name__
            })
            raise KernelsApiError(f"{method} {path} failed", {"error": str(e)}) from e

        if response.status_code not in expected:
            raise KernelsApiError(f"{method} {path} returned {response.status_code}", {
                "status_code": response.status_code,
                "response": response.text[:500]
            })

        try:
            return response.json()
        except ValueError as e:
            raise KernelsApiError(f"{method} {path} returned invalid JSON", {"error": str(e)}) from e
