from django.http import JsonResponse
from django.urls import include, path
from django.utils import timezone


def health(request):
    return JsonResponse({"status": "OK", "timestamp": timezone.now().isoformat()})


urlpatterns = [
    path("health", health, name="health"),
    path("api/", include("api.urls")),
]
