"""Request identity helpers: caller user id, client IP and user agent"""
from flask import request

UNKNOWN = 'unknown'


def get_clerk_user_id():
    """Extract Clerk user ID from request headers"""
    return request.headers.get('X-Clerk-User-Id') or request.headers.get('x-clerk-user-id')


def get_client_ip() -> str:
    """Cloudflare's connecting IP, else the first X-Forwarded-For hop, else 'unknown'"""
    cf_ip = (request.headers.get('CF-Connecting-IP') or '').strip()
    if cf_ip:
        return cf_ip
    forwarded = request.headers.get('X-Forwarded-For') or ''
    first_hop = forwarded.split(',')[0].strip()
    return first_hop or UNKNOWN


def get_user_agent() -> str:
    return (request.headers.get('User-Agent') or '').strip() or UNKNOWN
