"""Static lookup tables for the swear detector.

Entries are stored as written; the detector normalizes ``PROFANITY`` once at
import time so leetspeak and starred spellings collapse onto plain letters.
"""

PROFANITY = frozenset({
    # f-word
    "fuck", "fucking", "fucked", "fucker", "fuckers", "fuckin", "fuckin'",
    "fuk", "fuking", "fuked", "fuker", "fukers",
    "f*ck", "f**k", "fck", "fcuk", "phuck", "phuk",
    "motherfucker", "motherfuckers", "motherfucking", "motherfuckin",
    "mothafucker", "mothafucka",
    "fuckhead", "fuckface", "fuckwit", "fucktard", "fucktards",
    "dumbfuck", "clusterfuck", "clusterfucks", "fuckfest", "fuckfests",
    # s-word
    "shit", "shitting", "shitted", "shitter", "shite", "shits", "shitty",
    "sht", "sh*t", "s**t", "sh1t", "sh!t", "shyt", "shytty",
    "bullshit", "bullshitting", "bullshitter",
    "horseshit", "chickenshit", "apeshit", "dipshit", "dipshits",
    "shithead", "shitheads", "shitface", "shitbag", "shitstain",
    "shitshow", "shitshows",
    # b-word
    "bitch", "bitches", "bitching", "bitched", "bitchy", "bitchin",
    "b*tch", "b**ch", "b1tch", "b!tch", "biatch", "biznatch", "bich", "biches",
    "sumbitch", "bitchass", "bitchmade",
    # a-word
    "ass", "asses", "asshole", "assholes", "asshat", "asswipe", "assclown",
    "a$$", "a55", "a**hole",
    "arse", "arses", "arsehole", "arseholes",
    "badass", "smartass", "dumbass", "hardass", "lameass", "kickass",
    "badassery", "dumbassery", "fatass", "fatasses", "lardass", "lardasses",
    # d-word
    "damn", "damned", "dammit", "damnit",
    "goddamn", "goddamned", "goddamnit", "goddammit",
    # h-word
    "hell", "hells", "helluva",
    # c-word
    "cunt", "cunts", "cunty", "cunting", "c*nt", "c0nt", "c!nt", "cnt", "cnts",
    # anatomical
    "pussy", "pussies", "p*ssy", "pusy", "pusies",
    "dick", "dicks", "dickhead", "dickface", "dickwad", "dickweed",
    "d*ck", "d1ck", "d!ck", "dik", "diks",
    "cock", "cocks", "cockhead", "cocksucker", "cocksuckers", "c*ck", "c0ck",
    "kok", "koks",
    "knobhead", "knobheads", "bellend", "bellends",
    # sexual
    "slut", "sluts", "slutty", "slutting",
    "whore", "whores", "whoring", "whorehouse", "hore", "hores",
    # insults
    "bastard", "bastards",
    "prick", "pricks",
    "twat", "twats",
    "wank", "wanker", "wankers", "wanking",
    "douche", "douchebag", "douchebags", "douchey",
    "jerkoff", "scumbag", "scumbags",
    "retard", "retarded", "retards",
    "tosser", "tossers",
    "bollocks", "bollock",
    "bugger", "buggered", "buggering", "buggers",
    "piss", "pissing", "pissed", "pisser", "pissers",
    "crap", "crappy", "craps",
    # slurs
    "nigger", "niggers", "nigga", "niggas", "niggaz", "nigguh", "nigguhs",
    "n*gger", "n*gga", "sandnigger", "sandniggers",
    "chink", "chinks", "chinky",
    "spic", "spics", "spick", "spicks",
    "kike", "kikes", "kyke", "kykes",
    "gook", "gooks",
    "wetback", "wetbacks",
    "honky", "honkies", "honkey", "honkeys",
    "coon", "coons",
    "towelhead", "towelheads", "raghead", "ragheads",
    "beaner", "beaners",
    "zipperhead", "zipperheads",
    "polack", "polacks",
    "hymie", "hymies",
    "fag", "fags", "faggot", "faggots", "faggy", "faggotry", "f*g",
    "dyke", "dykes",
    "tranny", "trannies", "trannys",
    "shemale", "shemales",
    "spaz", "spazz", "spazzes",
    # abbreviations
    "wtf", "ffs",
})

# Function words that can never be profane, whatever substring they contain.
COMMON_WORDS = frozenset({
    "and", "the", "a", "an", "or", "but", "if", "is", "are", "was", "were",
    "be", "been", "being", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "may", "might", "can", "must",
    "this", "that", "these", "those", "what", "which", "who", "whom",
    "where", "when", "why", "how", "all", "each", "every", "some", "any",
    "more", "most", "many", "much", "few", "little", "other", "another",
    "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten",
    "you", "your", "yours", "he", "she", "it", "we", "they", "them", "their",
    "i", "me", "my", "mine", "us", "our", "ours", "his", "her", "hers", "its",
    "to", "of", "in", "on", "at", "by", "for", "with", "from", "into", "onto",
    "up", "down", "out", "off", "over", "under", "above", "below", "between",
    "about", "across", "through", "during", "before", "after", "while",
    "so", "than", "as", "like", "such", "just", "only", "also", "even", "still",
    "very", "too", "quite", "rather", "really", "well", "now", "then", "here", "there",
    "yes", "no", "not", "never", "always", "often", "sometimes", "usually",
})

# Matched against lowercased, space-joined windows of 2 to 4 raw tokens.
KNOWN_PHRASES = frozenset({
    "son of a bitch", "what the fuck", "what the hell", "what the shit",
    "holy shit", "oh shit", "oh my god", "no shit", "eat shit",
    "piece of shit", "full of shit",
    "for fuck sake", "for fucks sake", "fuck sake",
    "fuck off", "fuck you", "fuck me", "fuck yeah", "fuck no",
    "fuck this", "fuck that", "fuck it",
    "screw you", "bloody hell",
})

# Elongated spellings ("fuuuuck", "shiiit"), optionally inflected.
ELONGATION_PATTERNS = (
    r"f+u+c+k+(?:ing|in|ed|er|ers|s)?",
    r"s+h+i+t+(?:ty|s)?",
    r"b+i+t+c+h+(?:es|y)?",
    r"a+s+s+(?:hole|holes)?",
    r"d+i+c+k+s?",
    r"c+o+c+k+s?",
    r"p+u+s+s+y+",
    r"c+u+n+t+s?",
    r"n+i+g+g*[ae]+r+s?",
)
