from fastapi import APIRouter

from app.api.v1.routes import users, categories, expenses, recurring_expenses, budgets

api_router = APIRouter()

api_router.include_router(users.router)
api_router.include_router(categories.router)
api_router.include_router(expenses.router)
api_router.include_router(recurring_expenses.router)
api_router.include_router(budgets.router)
