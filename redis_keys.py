REDIS_ROOM_TREE_KEY = "room:tree:{slug}" # room id - hash of leaf path -> json value
REDIS_ROOM_SEQ_KEY = "room:seq:{slug}" # room id - counter for generated push keys
REDIS_ROOM_TREE_PATTERN = "room:tree:*"

# **Example `room:tree:{id}` hash fields**
# - `host` = "\"host1\""
# - `createdAt` = 1700000000000
# - `players/host1` = true
# - `offers/host1/sdp` = "\"v=0...\""
# - `ice_candidates/p2/candidate_1700000000123_0/candidate` = "\"candidate:...\""
# - `notifications/p2/n0000000000000007/type` = "\"offer\""
