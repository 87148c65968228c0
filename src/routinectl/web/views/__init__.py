from routinectl.web.views.routines import bp

__all__ = ["bp"]
