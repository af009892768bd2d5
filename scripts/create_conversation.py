#!/usr/bin/env python3
"""Script to open a buyer/seller conversation in the database."""

import sys
from pathlib import Path

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.chat.models import Conversation
from app.chat.stores import SqlConversationStore
from app.core.database import SessionLocal


def create_conversation(product_id: int, buyer_id: int, seller_id: int) -> Conversation:
    """Get or create the conversation for a product between two users."""
    db = SessionLocal()
    try:
        conversation, created = SqlConversationStore._get_or_create(db, product_id, buyer_id, seller_id)
    except Exception as e:
        db.rollback()
        print(f"❌ Error creating conversation: {e}")
        sys.exit(1)
    finally:
        db.close()

    if created:
        print("✅ Conversation created successfully!")
    else:
        print("ℹ️  Conversation already exists.")
    print(f"   ID: {conversation.id}")
    print(f"   Product: {conversation.product_id}")
    print(f"   Buyer: {conversation.buyer_id}")
    print(f"   Seller: {conversation.seller_id}")
    print("\n💡 Connect both users to /api/v1/ws and send")
    print(f'   {{"type": "chat", "conversationId": {conversation.id}, "content": "hi"}}')

    return conversation


def main():
    """Main entry point for the script."""
    if len(sys.argv) < 4:
        print("Usage: python create_conversation.py <product_id> <buyer_id> <seller_id>")
        print("\nExample:")
        print("  python create_conversation.py 3 1 2")
        sys.exit(1)

    try:
        product_id, buyer_id, seller_id = (int(arg) for arg in sys.argv[1:4])
    except ValueError:
        print("❌ product_id, buyer_id and seller_id must be integers")
        sys.exit(1)

    if buyer_id == seller_id:
        print("❌ Buyer and seller must be different users")
        sys.exit(1)

    create_conversation(product_id, buyer_id, seller_id)


if __name__ == "__main__":
    main()
