from fastapi import APIRouter, Depends
from bazaar.access.dependencies import admin_ip_guard
from bazaar.api import version_prefix
from bazaar.auth.routes import auth_admin_router, auth_router
from bazaar.cart.routes import carts_router
from bazaar.categories.routes import categories_admin_router, categories_public_router
from bazaar.common.routes import home_router
from bazaar.orders.routes import orders_admin_router, orders_router
from bazaar.products.routes import prods_admin_router, prods_public_router
from bazaar.reviews.routes import reviews_admin_router, reviews_router
from bazaar.site.routes import preferences_router, site_admin_router, site_router
from bazaar.user.routes import user_admin_router, user_router
from bazaar.vendors.routes import vendors_admin_router, vendors_public_router
from bazaar.wishlist.routes import wishlist_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(auth_router, prefix="/auth",tags=["auth"])
public_routers.include_router(user_router, prefix="/users",tags=["users"])
public_routers.include_router(preferences_router, prefix="/users/me/preferences",tags=["users"])
public_routers.include_router(categories_public_router, prefix="/categories",tags=["categories"])
public_routers.include_router(vendors_public_router, prefix="/vendors",tags=["vendors"])
public_routers.include_router(reviews_router,tags=["reviews"])
public_routers.include_router(prods_public_router, prefix="/products",tags=["products-public"])
public_routers.include_router(carts_router,prefix="/cart",tags=["cart"])
public_routers.include_router(wishlist_router,prefix="/wishlist",tags=["wishlist"])
public_routers.include_router(orders_router,prefix="/orders",tags=["orders"])
public_routers.include_router(site_router,prefix="/site",tags=["site"])
public_routers.include_router(home_router,tags=["home"])

#--------------------------------------------------------------------------------------------------------

admin_routers = APIRouter(prefix=f"{version_prefix}/admin", dependencies=[Depends(admin_ip_guard)])

admin_routers.include_router(auth_admin_router, prefix="/auth",tags=["auth-admin"])
admin_routers.include_router(prods_admin_router, prefix="/products",tags=["products-admin"])
admin_routers.include_router(categories_admin_router, prefix="/categories",tags=["categories-admin"])
admin_routers.include_router(vendors_admin_router, prefix="/vendors",tags=["vendors-admin"])
admin_routers.include_router(reviews_admin_router, prefix="/reviews",tags=["reviews-admin"])
admin_routers.include_router(orders_admin_router, prefix="/orders",tags=["orders-admin"])
admin_routers.include_router(user_admin_router, prefix="/users",tags=["users-admin"])
admin_routers.include_router(site_admin_router, prefix="/site",tags=["site-admin"])
