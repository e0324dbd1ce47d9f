from typing import Optional
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db.models import Q

User = get_user_model()


def format_doctor(u: User) -> dict:
    return {
        'id': u.id,
        'name': u.display_name,
        'email': u.email,
        'phone': u.phone,
        'specialization': u.specialization,
        'experience': u.experience,
        'education': u.education,
        'licenseId': u.license_id,
        'status': u.status,
    }


def list_doctors(*, status: Optional[str] = User.STATUS_APPROVED, q: Optional[str] = None,
                 specialization: Optional[str] = None, page: Optional[int] = None,
                 page_size: Optional[int] = None) -> tuple[list[dict], int]:
    qs = User.objects.filter(role=User.ROLE_DOCTOR)
    if status:
        qs = qs.filter(status=status)
    if q:
        qs = qs.filter(Q(first_name__icontains=q) | Q(last_name__icontains=q) | Q(username__icontains=q))
    if specialization:
        qs = qs.filter(specialization__iexact=specialization)

    total = qs.count()
    qs = qs.order_by('first_name', 'username', 'id')
    if page and page_size:
        start = (page-1)*page_size
        qs = qs[start:start+page_size]
    return [format_doctor(u) for u in qs], total


_VERSION_KEY = 'doctors:version'


def doctor_cache_key(*, q: Optional[str] = None, specialization: Optional[str] = None,
                     page: Optional[int] = None, page_size: Optional[int] = None) -> str:
    version = cache.get_or_set(_VERSION_KEY, 1, None)
    return f"doctors:v={version}:q={q or ''}:s={specialization or ''}:p={page}:ps={page_size}"


def invalidate_doctor_cache() -> None:
    """Bump the directory version so every cached page is ignored."""
    try:
        cache.incr(_VERSION_KEY)
    except ValueError:
        cache.set(_VERSION_KEY, 2, None)
