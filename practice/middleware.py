from django.http import JsonResponse

from practice.authentication import extract_cron_secret, is_cron_secret


class LoopbackCronMiddleware:
    """Refuse the cron secret when it does not come from the local machine."""
    LOOPBACK_ADDRS = ('127.0.0.1', '::1', 'localhost')

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        remote = request.META.get('REMOTE_ADDR') or ''
        if remote not in self.LOOPBACK_ADDRS and is_cron_secret(extract_cron_secret(request)):
            return JsonResponse({'error': 'Non autorisé'}, status=403)
        return self.get_response(request)
