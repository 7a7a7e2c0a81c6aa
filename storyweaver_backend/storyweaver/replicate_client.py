import os, time, httpx, asyncio, logging
from .settings import REPLICATE_POLL_INTERVAL_MS, REPLICATE_POLL_TIMEOUT_S, REPLICATE_MODEL_VERSION, UPSTREAM_TIMEOUT_S

logger = logging.getLogger(__name__)

PREDICTIONS_URL = "https://api.replicate.com/v1/predictions"
STYLE_SUFFIX = "storybook illustration, rich colors, cinematic lighting, culturally authentic details, no text"

def replicate_available() -> bool:
    return bool(os.getenv("REPLICATE_API_TOKEN", ""))

def _headers():
    token = os.getenv("REPLICATE_API_TOKEN", "")
    if not token:
        raise RuntimeError("REPLICATE_API_TOKEN is not set; please configure your .env")
    return {"Authorization": f"Token {token}"}

def _model_selector() -> str:
    # Prefer explicit version from env for stability; fall back to a public model alias (latest).
    return REPLICATE_MODEL_VERSION or "black-forest-labs/flux-schnell"

def _parse_selector(selector: str):
    """Return ("model", {"owner", "name"}) for ``owner/name[:alias]`` selectors, else ("version", {"version"})."""
    owner_name, _, _alias = selector.partition(":")
    if "/" in owner_name:
        owner, name = owner_name.split("/", 1)
        return "model", {"owner": owner, "name": name}
    return "version", {"version": selector}

async def _create_prediction(client: httpx.AsyncClient, prompt: str) -> str:
    body = {"input": {"prompt": f"{prompt}, {STYLE_SUFFIX}", "num_outputs": 1, "aspect_ratio": "1:1"}}
    mode, data = _parse_selector(_model_selector())
    if mode == "version":
        body["version"] = data["version"]
        url = PREDICTIONS_URL
    else:
        url = f"https://api.replicate.com/v1/models/{data['owner']}/{data['name']}/predictions"

    r = await client.post(url, headers={**_headers(), "Content-Type": "application/json"}, json=body)
    if r.status_code == 404 and mode == "model":
        # Model endpoint unavailable for this alias; resolve latest version and use the generic endpoint.
        logger.info("Falling back to latest version resolution for model")
        model_resp = await client.get(f"https://api.replicate.com/v1/models/{data['owner']}/{data['name']}", headers=_headers())
        model_resp.raise_for_status()
        version_id = (model_resp.json().get("latest_version") or {}).get("id")
        if not version_id:
            raise RuntimeError("Could not resolve latest version for model")
        r = await client.post(PREDICTIONS_URL, headers={**_headers(), "Content-Type": "application/json"}, json={**body, "version": version_id})
    if r.status_code >= 400:
        raise RuntimeError(f"Replicate create failed {r.status_code}: {r.text}")
    return r.json()["id"]

async def _wait_for_output(client: httpx.AsyncClient, pred_id: str) -> str:
    start = time.time()
    while True:
        s = await client.get(f"{PREDICTIONS_URL}/{pred_id}", headers=_headers())
        if s.status_code >= 400:
            raise RuntimeError(f"Replicate status failed {s.status_code}: {s.text}")
        body = s.json()
        status = body.get("status")
        logger.info(f"Replicate prediction {pred_id} status: {status}")
        if status in ("succeeded", "failed", "canceled"):
            if status != "succeeded":
                raise RuntimeError(f"Replicate failed: {status}. error={body.get('error')}")
            output = body.get("output")
            if isinstance(output, list) and output:
                return output[0]
            if isinstance(output, str) and output:
                return output
            raise RuntimeError("Replicate succeeded but no output URL")
        if time.time() - start > REPLICATE_POLL_TIMEOUT_S:
            raise TimeoutError("Replicate polling timeout")
        await asyncio.sleep(REPLICATE_POLL_INTERVAL_MS / 1000.0)

async def create_and_wait_image(prompt: str) -> str:
    logger.info(f"Starting Replicate image generation for prompt: {prompt[:100]}...")
    async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_S) as client:
        pred_id = await _create_prediction(client, prompt)
        logger.info(f"Replicate prediction created with ID: {pred_id}")
        url = await _wait_for_output(client, pred_id)
        logger.info(f"Replicate prediction succeeded, got output URL: {url}")
        return url
