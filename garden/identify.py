# garden/identify.py
# ==============================
# Plant identification via the Plant.id HTTP API
# ==============================

from typing import List, Optional

from core.errors import UpstreamError
from core.settings import get_plant_id_api_key

PLANT_ID_URL = "https://api.plant.id/v2/identify"
IDENTIFY_TIMEOUT = 60


class PlantIdClient:
    """
    Client for Plant.id v2 identification.

    Sends base64-encoded images (plus optional coordinates) and returns the
    best suggestion's plant name.
    """

    def __init__(self, api_key: Optional[str] = None, url: str = PLANT_ID_URL):
        """
        Args:
            api_key: Plant.id key. Defaults to the PLANT_ID_API_KEY env var
                     (ConfigError if unset).
            url: Identification endpoint.
        """
        import requests
        self._requests = requests
        self.api_key = api_key or get_plant_id_api_key()
        self.url = url

    def identify(
        self,
        images: List[str],
        latitude: Optional[float] = None,
        longitude: Optional[float] = None
    ) -> str:
        """
        Identify a plant from one or more images.

        Args:
            images: Base64-encoded image data.
            latitude: Optional latitude to improve accuracy.
            longitude: Optional longitude to improve accuracy.

        Returns:
            Name of the top suggestion.

        Raises:
            UpstreamError: On transport/HTTP failure or no suggestions.
        """
        payload = {"images": images, "latitude": latitude, "longitude": longitude}
        headers = {"Api-Key": self.api_key, "Content-Type": "application/json"}

        try:
            r = self._requests.post(self.url, headers=headers, json=payload, timeout=IDENTIFY_TIMEOUT)
        except self._requests.exceptions.RequestException as e:
            raise UpstreamError(f"Could not reach Plant.id: {e}") from e

        if not r.ok:
            raise UpstreamError(f"PlantID API error {r.status_code}", {"body": r.text[:500]})

        suggestions = r.json().get("suggestions") or []
        if not suggestions or not suggestions[0].get("plant_name"):
            raise UpstreamError("No plant suggestions returned from PlantID API")
        return suggestions[0]["plant_name"]
