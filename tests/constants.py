RECIPIENT = "0x1111111111111111111111111111111111111111"
PAYER = "0x2222222222222222222222222222222222222222"
TOKEN = "0x036cbd53842c5426634e7929541ec2318f3dcf7e"
CHAIN_ID = 84532
TX_HASH = "0x" + "ab" * 32
RELAY_HASH = "0x" + "cd" * 32
TEST_PRIVATE_KEY = "0x" + "11" * 32
