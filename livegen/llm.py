"""
Model invocation over any OpenAI-compatible chat completions endpoint
(OpenRouter by default, a local Ollama `/v1/chat/completions` works too).

Retryable failures (rate limits, gateway errors, dropped connections) move on to
the next model in the chain; everything else surfaces as ModelError.
"""
import json, logging, time

import requests

from .config import RETRYABLE_STATUS

log = logging.getLogger("llm")


class ModelError(Exception):
    def __init__(self, status, message: str, model: str = ""):
        super().__init__(message)
        self.status  = status
        self.message = message
        self.model   = model

    def __str__(self):
        where = f" [{self.model}]" if self.model else ""
        code  = f" ({self.status})" if self.status else ""
        return f"{self.message}{code}{where}"


def _error_text(resp) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or resp.reason or "").strip()[:300]
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or err)
    return str(err or body)[:300]


class ModelStream:
    """Iterator over the text deltas of one streamed completion."""

    def __init__(self, response, model: str):
        self.response = response
        self.model    = model
        self.closed   = False

    def __iter__(self):
        try:
            for line in self.response.iter_lines(decode_unicode=True):
                if self.closed:
                    return
                if not line or not line.startswith("data:"):
                    continue
                payload = line[5:].strip()
                if payload == "[DONE]":
                    return
                try:
                    chunk = json.loads(payload)
                except json.JSONDecodeError:
                    log.debug(f"   skipping malformed chunk: {payload[:80]}")
                    continue
                if chunk.get("error"):
                    raise ModelError(None, str(chunk["error"]), self.model)
                choices = chunk.get("choices") or [{}]
                delta = (choices[0].get("delta") or {}).get("content")
                if delta:
                    yield delta
        except requests.RequestException as e:
            if self.closed:
                return
            raise ModelError(None, f"stream interrupted: {e}", self.model) from e
        finally:
            self.close()

    def close(self):
        """Abort the HTTP response. Safe to call from another thread."""
        if not self.closed:
            self.closed = True
            self.response.close()


class ModelClient:
    def __init__(self, settings, session=None):
        self.settings = settings
        self.http     = session or requests.Session()

    def invoke(self, messages, stream: bool = True, temperature=None, max_tokens=None):
        """
        Send one chat completion request, falling back down the model chain.

        Returns the full text (stream=False) or a ModelStream of deltas.
        """
        s = self.settings
        chain = s.model_chain()[: max(1, s.max_attempts)]
        last_error = None

        for attempt, model in enumerate(chain):
            if attempt:
                delays = s.retry_delays or (0,)
                delay = delays[min(attempt - 1, len(delays) - 1)]
                log.warning(f"   ↪ falling back to {model} in {delay:g}s ({last_error})")
                if delay:
                    time.sleep(delay)

            body = {
                "model":       model,
                "messages":    messages,
                "temperature": s.temperature if temperature is None else temperature,
                "max_tokens":  s.max_tokens if max_tokens is None else max_tokens,
                "stream":      stream,
            }
            log.info(f"   → {model} (attempt {attempt + 1}/{len(chain)}, stream={stream})")
            try:
                resp = self.http.post(s.api_url, json=body, headers=s.headers(),
                                      stream=stream, timeout=s.request_timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = ModelError(None, f"network error: {e}", model)
                continue

            if resp.status_code in RETRYABLE_STATUS:
                last_error = ModelError(resp.status_code, _error_text(resp), model)
                resp.close()
                continue
            if resp.status_code >= 400:
                err = ModelError(resp.status_code, _error_text(resp), model)
                resp.close()
                log.error(f"   model request failed: {err}")
                raise err

            if stream:
                return ModelStream(resp, model)
            try:
                return resp.json()["choices"][0]["message"]["content"] or ""
            except (ValueError, KeyError, IndexError, TypeError) as e:
                raise ModelError(resp.status_code, f"malformed response: {e}", model) from e

        log.error(f"   all models failed: {last_error}")
        raise last_error or ModelError(None, "no model configured")
