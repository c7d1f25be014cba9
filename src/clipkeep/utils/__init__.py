from clipkeep.utils.thumbnails import make_thumbnail

__all__ = ['make_thumbnail']
