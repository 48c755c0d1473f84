from django.http import HttpResponse, JsonResponse

from procurement.services import supabase_client


def health_check(request):
    return HttpResponse("ok")


def readiness(request):
    """Report whether the remote store client can be built."""
    ready = supabase_client.get_supabase_client() is not None
    return JsonResponse({"supabase": ready}, status=200 if ready else 503)
