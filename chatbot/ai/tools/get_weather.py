import httpx
from pydantic import BaseModel, Field

from chatbot.ai.prompts import GET_WEATHER
from chatbot.ai.tools.base import Tool, ToolContext

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


class GetWeatherArgs(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


def get_weather(ctx: ToolContext, args: GetWeatherArgs) -> dict:
    response = httpx.get(
        FORECAST_URL,
        params={
            "latitude": args.latitude,
            "longitude": args.longitude,
            "current": "temperature_2m",
            "hourly": "temperature_2m",
            "daily": "sunrise,sunset",
            "timezone": "auto",
        },
        timeout=10.0,
    )
    response.raise_for_status()
    return response.json()


get_weather_tool = Tool(
    name=GET_WEATHER,
    description="Get the current weather at a location",
    args_model=GetWeatherArgs,
    execute=get_weather,
)
